"""
AssignmentLockService tests (compare-and-swap persistence of holds).

Covers:
- include / lock / unlock against the persisted hold columns
- Refusal of unevaluated and deleted records
- The guarded UPDATE catches a hold the pre-check did not see
- release_all
"""

from uuid import uuid4

import pytest

from payroll_kernel.domain.payability import UNPAID, Payability, PayabilityState
from payroll_kernel.exceptions import (
    RecordAlreadyHeldError,
    RecordNotEvaluatedError,
    WorkRecordNotFoundError,
)
from payroll_kernel.services.assignment_lock_service import AssignmentLockService


@pytest.fixture
def locks(session, deterministic_clock):
    return AssignmentLockService(session, deterministic_clock)


@pytest.fixture
def drafts(payment_service):
    """Two empty drafts to act as holders."""
    return (
        payment_service.create_draft(1, 2024).id,
        payment_service.create_draft(2, 2024).id,
    )


class TestInclude:
    def test_include_sets_hold_columns(self, locks, drafts, evaluated_records, session):
        first, _ = drafts
        (record,) = evaluated_records(1)

        result = locks.include(record.id, first)

        assert result == Payability(PayabilityState.DRAFT_HELD, first)
        assert locks.record_payability(record.id) == result
        session.refresh(record)
        assert record.held_by_payment_id == first
        assert record.held_at is not None
        assert record.locked_at is None

    def test_include_held_record(self, locks, drafts, evaluated_records):
        first, second = drafts
        (record,) = evaluated_records(1)
        locks.include(record.id, first)

        with pytest.raises(RecordAlreadyHeldError) as exc_info:
            locks.include(record.id, second)
        assert exc_info.value.held_by_payment_id == first

    def test_guarded_update_catches_stale_check(
        self, locks, drafts, evaluated_records, monkeypatch, captured_logs
    ):
        first, second = drafts
        (record,) = evaluated_records(1)
        locks.include(record.id, first)

        # Pretend the pre-check read happened before the other hold landed
        monkeypatch.setattr(locks, "record_payability", lambda record_id: UNPAID)

        with pytest.raises(RecordAlreadyHeldError):
            locks.include(record.id, second)
        assert any(r["message"] == "work_record_hold_conflict" for r in captured_logs())

    def test_unevaluated_record(self, locks, drafts, payroll_setup, create_work_record):
        worker, activity, _, _ = payroll_setup
        record = create_work_record(worker, activity, completion_percentage=None)

        with pytest.raises(RecordNotEvaluatedError) as exc_info:
            locks.include(record.id, drafts[0])
        assert exc_info.value.status == "assigned"

    def test_deleted_record(self, locks, drafts, evaluated_records, session):
        (record,) = evaluated_records(1)
        record.is_deleted = True
        session.flush()

        with pytest.raises(RecordNotEvaluatedError) as exc_info:
            locks.include(record.id, drafts[0])
        assert exc_info.value.status == "deleted"

    def test_unknown_record(self, locks, drafts):
        with pytest.raises(WorkRecordNotFoundError):
            locks.include(uuid4(), drafts[0])


class TestLockUnlock:
    def test_lock_after_include(self, locks, drafts, evaluated_records, session):
        first, _ = drafts
        (record,) = evaluated_records(1)
        locks.include(record.id, first)

        locks.lock(record.id, first)

        session.refresh(record)
        assert record.locked_at is not None
        # Payment is still a draft, so the derived state stays DRAFT_HELD
        assert locks.record_payability(record.id).state is PayabilityState.DRAFT_HELD

    def test_lock_by_other_payment(self, locks, drafts, evaluated_records):
        first, second = drafts
        (record,) = evaluated_records(1)
        locks.include(record.id, first)

        with pytest.raises(RecordAlreadyHeldError):
            locks.lock(record.id, second)

    def test_lock_unheld(self, locks, drafts, evaluated_records):
        (record,) = evaluated_records(1)
        with pytest.raises(RecordAlreadyHeldError):
            locks.lock(record.id, drafts[0])

    def test_conflict_log_reports_current_holder(
        self, locks, drafts, evaluated_records, monkeypatch, captured_logs
    ):
        first, second = drafts
        (record,) = evaluated_records(1)
        locks.include(record.id, first)
        real = locks.record_payability
        stale = [UNPAID]
        monkeypatch.setattr(
            locks, "record_payability", lambda record_id: stale.pop() if stale else real(record_id)
        )

        with pytest.raises(RecordAlreadyHeldError):
            locks.include(record.id, second)

        (conflict,) = [r for r in captured_logs() if r["message"] == "work_record_hold_conflict"]
        assert conflict["held_by_payment_id"] == str(first)
        assert conflict["payment_id"] == str(second)

    def test_conflict_log_without_holder(
        self, locks, drafts, evaluated_records, monkeypatch, captured_logs
    ):
        first, _ = drafts
        (record,) = evaluated_records(1)
        real = locks.record_payability
        # Pre-check still sees a hold that has since been released
        stale = [Payability(PayabilityState.DRAFT_HELD, first)]
        monkeypatch.setattr(
            locks, "record_payability", lambda record_id: stale.pop() if stale else real(record_id)
        )

        with pytest.raises(RecordAlreadyHeldError) as exc_info:
            locks.lock(record.id, first)

        assert exc_info.value.held_by_payment_id is None
        (conflict,) = [r for r in captured_logs() if r["message"] == "work_record_hold_conflict"]
        assert conflict["held_by_payment_id"] is None

    def test_unlock_clears_hold(self, locks, drafts, evaluated_records, session):
        first, _ = drafts
        (record,) = evaluated_records(1)
        locks.include(record.id, first)
        locks.lock(record.id, first)

        assert locks.unlock(record.id, first) == UNPAID

        session.refresh(record)
        assert record.held_by_payment_id is None
        assert record.held_at is None
        assert record.locked_at is None

    def test_unlock_unheld_is_noop(self, locks, drafts, evaluated_records):
        (record,) = evaluated_records(1)
        assert locks.unlock(record.id, drafts[0]) == UNPAID

    def test_unlock_by_other_payment(self, locks, drafts, evaluated_records):
        first, second = drafts
        (record,) = evaluated_records(1)
        locks.include(record.id, first)

        with pytest.raises(RecordAlreadyHeldError):
            locks.unlock(record.id, second)
        assert locks.record_payability(record.id).payment_id == first


class TestBulk:
    def test_lock_all_and_release_all(self, locks, drafts, evaluated_records):
        first, second = drafts
        mine = evaluated_records(3)
        for record in mine:
            locks.include(record.id, first)

        assert locks.lock_all(first, [r.id for r in mine]) == 3
        assert locks.release_all(second) == 0
        assert locks.release_all(first) == 3
        assert all(locks.record_payability(r.id) == UNPAID for r in mine)
