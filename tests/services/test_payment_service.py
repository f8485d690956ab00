"""
PaymentService lifecycle tests.

Covers:
- create_draft: period validation, default title, one draft per period,
  initial records
- add_line_item / add_line_items / remove_line_item: amounts, totals,
  record holds, refusals, all-or-nothing rollback
- submit / approve / record_payment / cancel: transitions, locks,
  snapshots, terminal states, repricing at submit
- Salary resolution: current salary by default, assignment date on request
- delete_draft: purge with history, record release
- reevaluate_draft and update_payment
- History ledger ordering and the operation audit log
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_config.schema import WageConfig
from payroll_kernel.domain.payability import UNPAID, PayabilityState
from payroll_kernel.domain.payment_workflow import PaymentStatus
from payroll_kernel.domain.values import AuditOperation, AuditOutcome, ChangeType, RateBasis
from payroll_kernel.exceptions import (
    AlreadyCancelledError,
    AlreadyPaidError,
    InvalidPeriodError,
    LineItemNotFoundError,
    MissingReasonError,
    MissingReferenceError,
    NoActiveSalaryError,
    NoLineItemsError,
    NotApprovedError,
    NotDraftError,
    NotPendingApprovalError,
    PaymentNotFoundError,
    PeriodAlreadyHasDraftError,
    RecordAlreadyHeldError,
    RecordNotEvaluatedError,
    WorkRecordNotFoundError,
)
from payroll_kernel.selectors.audit_log_selector import AuditLogSelector
from payroll_kernel.selectors.payment_selector import PaymentSelector
from payroll_kernel.services.payment_service import PaymentService, default_payment_title
from tests.conftest import TEST_ACTOR_ID, TEST_ORIGIN


def payability(session, record_id):
    return PaymentSelector(session).record_payability(record_id)


def ids(records):
    return [r.id for r in records]


class TestDefaultTitle:
    @pytest.mark.parametrize(
        "month, year, expected",
        [
            (1, 2024, "Payments for Week ending 22-28 Jan 2024"),
            (3, 2024, "Payments for Week ending 25-31 Mar 2024"),
            (2, 2026, "Payments for Week ending 16-22 Feb 2026"),
        ],
    )
    def test_last_sunday_of_month(self, month, year, expected):
        assert default_payment_title(month, year) == expected


class TestCreateDraft:
    def test_empty_draft(self, payment_service, deterministic_clock):
        draft = payment_service.create_draft(1, 2024)

        assert draft.status is PaymentStatus.DRAFT
        assert draft.total_amount == Decimal("0")
        assert draft.line_item_count == 0
        assert draft.title == "Payments for Week ending 22-28 Jan 2024"
        assert draft.created_by == TEST_ACTOR_ID
        assert draft.created_at == deterministic_clock.now()

    def test_explicit_title_and_remarks(self, payment_service):
        draft = payment_service.create_draft(
            2, 2024, remarks="first week short", title="February wages"
        )
        assert draft.title == "February wages"
        assert draft.remarks == "first week short"

    def test_with_initial_records(self, payment_service, evaluated_records, session):
        records = evaluated_records(3)

        draft = payment_service.create_draft(1, 2024, record_ids=ids(records))

        assert draft.line_item_count == 3
        assert draft.total_amount == Decimal("1350.00")
        assert [li.position for li in draft.line_items] == [1, 2, 3]
        for record in records:
            current = payability(session, record.id)
            assert current.state is PayabilityState.DRAFT_HELD
            assert current.payment_id == draft.id

        history = payment_service.get_history(draft.id)
        assert [h.change_type for h in history] == [
            ChangeType.LINE_ITEM_ADDED,
            ChangeType.CREATED,
        ]
        assert history[0].description == "Added 3 work records"

    @pytest.mark.parametrize("month, year", [(0, 2024), (13, 2024), (6, 1999)])
    def test_invalid_period(self, payment_service, month, year):
        with pytest.raises(InvalidPeriodError):
            payment_service.create_draft(month, year)

    def test_duplicate_draft_for_period(self, payment_service):
        first = payment_service.create_draft(1, 2024)

        with pytest.raises(PeriodAlreadyHasDraftError) as exc_info:
            payment_service.create_draft(1, 2024)
        assert exc_info.value.existing_payment_id == first.id

    def test_other_period_allowed(self, payment_service):
        payment_service.create_draft(1, 2024)
        payment_service.create_draft(2, 2024)
        payment_service.create_draft(1, 2025)

    def test_new_draft_after_cancel(self, payment_service):
        first = payment_service.create_draft(1, 2024)
        payment_service.cancel(first.id, "wrong period")

        second = payment_service.create_draft(1, 2024)
        assert second.id != first.id

    def test_failed_initial_record_rolls_back_draft(
        self, payment_service, payroll_setup, create_work_record, session
    ):
        worker, activity, _, _ = payroll_setup
        good = create_work_record(worker, activity, assignment_date=date(2024, 1, 2))
        pending = create_work_record(
            worker, activity, assignment_date=date(2024, 1, 3), completion_percentage=None
        )

        with pytest.raises(RecordNotEvaluatedError):
            payment_service.create_draft(1, 2024, record_ids=[good.id, pending.id])

        assert PaymentSelector(session).find_draft(1, 2024) is None
        assert payability(session, good.id) == UNPAID


class TestAddLineItem:
    def test_line_item_breakdown(self, payment_service, evaluated_records, payroll_setup):
        _, _, _, salary = payroll_setup
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024)

        line = payment_service.add_line_item(draft.id, record.id)

        assert line.work_record_id == record.id
        assert line.salary_record_id == salary.id
        assert line.rate == Decimal("500.00")
        assert line.amount == Decimal("450.00")
        assert line.employee_pf == Decimal("54.00")
        assert line.voluntary_pf == Decimal("9.00")
        assert line.employer_pf == Decimal("54.00")
        assert line.net_amount == Decimal("387.00")
        assert not line.is_snapshot_captured

        payment = payment_service.get_payment(draft.id)
        assert payment.total_amount == Decimal("450.00")

    def test_add_many(self, payment_service, evaluated_records):
        records = evaluated_records(4)
        draft = payment_service.create_draft(1, 2024)

        lines = payment_service.add_line_items(draft.id, ids(records))

        assert len(lines) == 4
        payment = payment_service.get_payment(draft.id)
        assert payment.total_amount == sum(li.amount for li in payment.line_items)
        assert payment.total_amount == Decimal("1800.00")

    def test_record_held_by_other_draft(self, payment_service, evaluated_records, session):
        (record,) = evaluated_records(1)
        january = payment_service.create_draft(1, 2024, record_ids=[record.id])
        february = payment_service.create_draft(2, 2024)

        with pytest.raises(RecordAlreadyHeldError) as exc_info:
            payment_service.add_line_item(february.id, record.id)

        assert exc_info.value.held_by_payment_id == january.id
        assert payment_service.get_payment(february.id).line_item_count == 0
        assert payability(session, record.id).payment_id == january.id

    def test_same_record_twice(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])

        with pytest.raises(RecordAlreadyHeldError):
            payment_service.add_line_item(draft.id, record.id)

    def test_unevaluated_record(self, payment_service, payroll_setup, create_work_record):
        worker, activity, _, _ = payroll_setup
        record = create_work_record(worker, activity, completion_percentage=None)
        draft = payment_service.create_draft(1, 2024)

        with pytest.raises(RecordNotEvaluatedError) as exc_info:
            payment_service.add_line_item(draft.id, record.id)
        assert exc_info.value.status == "assigned"

    def test_deleted_record(self, payment_service, evaluated_records, session):
        (record,) = evaluated_records(1)
        record.is_deleted = True
        session.commit()
        draft = payment_service.create_draft(1, 2024)

        with pytest.raises(WorkRecordNotFoundError):
            payment_service.add_line_item(draft.id, record.id)

    def test_unknown_record(self, payment_service):
        draft = payment_service.create_draft(1, 2024)
        with pytest.raises(WorkRecordNotFoundError):
            payment_service.add_line_item(draft.id, uuid4())

    def test_worker_without_salary(
        self, payment_service, create_worker, create_activity, create_work_record
    ):
        worker = create_worker(name="Ravi Kumar", pf_account_id="PF-0002")
        record = create_work_record(worker, create_activity(name="Pruning"))
        draft = payment_service.create_draft(1, 2024)

        with pytest.raises(NoActiveSalaryError):
            payment_service.add_line_item(draft.id, record.id)

    def test_priced_with_current_salary(self, payment_service, payroll_setup, create_work_record):
        worker, activity, _, salary = payroll_setup
        record = create_work_record(worker, activity, assignment_date=date(2022, 12, 31))
        draft = payment_service.create_draft(12, 2022)

        line = payment_service.add_line_item(draft.id, record.id)

        # Salary starts 2023-01-01 but is the one in force today
        assert line.salary_record_id == salary.id
        assert line.amount == Decimal("450.00")

    def test_revised_salary_applies_to_older_records(
        self, payment_service, salary_service, payroll_setup, create_work_record, session
    ):
        worker, activity, _, _ = payroll_setup
        record = create_work_record(worker, activity, assignment_date=date(2023, 11, 15))
        raised = salary_service.update_salary(
            worker.id,
            Decimal("7000"),
            RateBasis.WEEKLY,
            date(2023, 12, 1),
            TEST_ACTOR_ID,
            reason_for_change="annual revision",
        )
        session.commit()
        draft = payment_service.create_draft(11, 2023)

        line = payment_service.add_line_item(draft.id, record.id)

        assert line.salary_record_id == raised.id
        assert line.amount == Decimal("900.00")

    def test_salary_as_of_assignment_date_option(
        self,
        session,
        actor_provider,
        deterministic_clock,
        payroll_setup,
        create_work_record,
    ):
        worker, activity, _, _ = payroll_setup
        service = PaymentService(
            session,
            actor_provider,
            clock=deterministic_clock,
            config=WageConfig(salary_as_of="assignment_date"),
        )
        record = create_work_record(worker, activity, assignment_date=date(2022, 12, 31))
        draft = service.create_draft(12, 2022)

        with pytest.raises(NoActiveSalaryError) as exc_info:
            service.add_line_item(draft.id, record.id)
        assert exc_info.value.as_of == date(2022, 12, 31)

    def test_batch_is_all_or_nothing(self, payment_service, evaluated_records, session):
        free, taken = evaluated_records(2)
        payment_service.create_draft(1, 2024, record_ids=[taken.id])
        draft = payment_service.create_draft(2, 2024)

        with pytest.raises(RecordAlreadyHeldError):
            payment_service.add_line_items(draft.id, [free.id, taken.id])

        assert payability(session, free.id) == UNPAID
        payment = payment_service.get_payment(draft.id)
        assert payment.line_item_count == 0
        assert payment.total_amount == Decimal("0")

    def test_refused_after_submit(self, payment_service, evaluated_records):
        first, second = evaluated_records(2)
        draft = payment_service.create_draft(1, 2024, record_ids=[first.id])
        payment_service.submit(draft.id)

        with pytest.raises(NotDraftError):
            payment_service.add_line_item(draft.id, second.id)

    def test_unknown_payment(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        with pytest.raises(PaymentNotFoundError):
            payment_service.add_line_item(uuid4(), record.id)


class TestRemoveLineItem:
    def test_remove_releases_record(self, payment_service, evaluated_records, session):
        records = evaluated_records(3)
        draft = payment_service.create_draft(1, 2024, record_ids=ids(records))
        removed = draft.line_items[1]

        payment = payment_service.remove_line_item(draft.id, removed.id)

        assert payment.line_item_count == 2
        assert payment.total_amount == Decimal("900.00")
        assert payability(session, removed.work_record_id) == UNPAID
        assert payment_service.get_history(draft.id)[0].change_type is ChangeType.LINE_ITEM_REMOVED

    def test_removed_record_can_join_other_draft(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        january = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.remove_line_item(january.id, january.line_items[0].id)

        february = payment_service.create_draft(2, 2024)
        line = payment_service.add_line_item(february.id, record.id)
        assert line.payment_id == february.id

    def test_unknown_line_item(self, payment_service):
        draft = payment_service.create_draft(1, 2024)
        with pytest.raises(LineItemNotFoundError):
            payment_service.remove_line_item(draft.id, uuid4())

    def test_refused_after_submit(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)

        with pytest.raises(NotDraftError):
            payment_service.remove_line_item(draft.id, draft.line_items[0].id)


class TestLifecycle:
    def test_draft_to_paid(self, payment_service, evaluated_records, session):
        records = evaluated_records(3)
        draft = payment_service.create_draft(1, 2024, record_ids=ids(records))

        pending = payment_service.submit(draft.id, remarks="week 4")
        assert pending.status is PaymentStatus.PENDING_APPROVAL
        assert pending.submitted_by == TEST_ACTOR_ID
        assert all(li.is_snapshot_captured for li in pending.line_items)
        for record in records:
            assert payability(session, record.id).state is PayabilityState.LOCKED

        approved = payment_service.approve(draft.id, remarks="checked")
        assert approved.status is PaymentStatus.APPROVED
        assert approved.remarks == "week 4\nchecked"
        for record in records:
            assert payability(session, record.id).state is PayabilityState.APPROVED

        paid = payment_service.record_payment(draft.id, date(2024, 2, 5), "  UTR-0001 ")
        assert paid.status is PaymentStatus.PAID
        assert paid.reference_number == "UTR-0001"
        assert paid.payment_date == date(2024, 2, 5)
        assert paid.total_amount == Decimal("1350.00")
        for record in records:
            assert payability(session, record.id).state is PayabilityState.PAID

        with pytest.raises(AlreadyPaidError):
            payment_service.cancel(draft.id, "too late")

        assert payment_service.get_payment(draft.id).status is PaymentStatus.PAID
        history = payment_service.get_history(draft.id)
        assert [h.change_type for h in history] == [
            ChangeType.PAID,
            ChangeType.APPROVED,
            ChangeType.SUBMITTED,
            ChangeType.LINE_ITEM_ADDED,
            ChangeType.CREATED,
        ]

    def test_submit_snapshot_contents(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])

        (line,) = payment_service.submit(draft.id).line_items

        assert line.snapshot_worker_name == "Lakshmi Devi"
        assert line.snapshot_salary_amount == Decimal("3500")
        assert line.snapshot_salary_rate_basis == RateBasis.WEEKLY.value
        assert line.snapshot_voluntary_pf_percent == Decimal("2")
        assert line.snapshot_activity_name == "Plucking"
        assert line.snapshot_criteria_unit == "kg"
        assert line.snapshot_criteria_value == Decimal("25")
        assert line.snapshot_completion_percentage == Decimal("90")

    def test_submit_reprices_records_evaluated_while_held(
        self, payment_service, work_record_service, evaluated_records, session
    ):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        work_record_service.evaluate(record.id, Decimal("100"), TEST_ACTOR_ID)
        session.commit()

        pending = payment_service.submit(draft.id)

        (line,) = pending.line_items
        assert line.snapshot_completion_percentage == Decimal("100")
        assert line.amount == Decimal("500.00")
        assert line.net_amount == Decimal("430.00")
        assert pending.total_amount == Decimal("500.00")
        entry = payment_service.get_history(draft.id)[0]
        assert entry.change_type is ChangeType.SUBMITTED
        assert entry.previous_amount == Decimal("450.00")
        assert entry.new_amount == Decimal("500.00")

    def test_submit_without_line_items(self, payment_service):
        draft = payment_service.create_draft(1, 2024)

        with pytest.raises(NoLineItemsError):
            payment_service.submit(draft.id)
        assert payment_service.get_payment(draft.id).status is PaymentStatus.DRAFT

    def test_submit_twice(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)

        with pytest.raises(NotDraftError):
            payment_service.submit(draft.id)

    def test_approve_draft_refused(self, payment_service):
        draft = payment_service.create_draft(1, 2024)
        with pytest.raises(NotPendingApprovalError):
            payment_service.approve(draft.id)

    def test_record_payment_before_approval(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)

        with pytest.raises(NotApprovedError):
            payment_service.record_payment(draft.id, date(2024, 2, 5), "UTR-1")

    @pytest.mark.parametrize("reference", ["", "   "])
    def test_record_payment_requires_reference(
        self, payment_service, evaluated_records, reference
    ):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)
        payment_service.approve(draft.id)

        with pytest.raises(MissingReferenceError):
            payment_service.record_payment(draft.id, date(2024, 2, 5), reference)
        assert payment_service.get_payment(draft.id).status is PaymentStatus.APPROVED


class TestCancel:
    @pytest.mark.parametrize("stage", ["draft", "pending_approval", "approved"])
    def test_cancel_releases_every_record(
        self, payment_service, evaluated_records, session, stage
    ):
        records = evaluated_records(3)
        draft = payment_service.create_draft(1, 2024, record_ids=ids(records))
        if stage in ("pending_approval", "approved"):
            payment_service.submit(draft.id)
        if stage == "approved":
            payment_service.approve(draft.id)

        cancelled = payment_service.cancel(draft.id, "  duplicate run ")

        assert cancelled.status is PaymentStatus.CANCELLED
        assert cancelled.cancellation_reason == "duplicate run"
        assert cancelled.cancelled_by == TEST_ACTOR_ID
        # Line items are kept as the record of what was cancelled
        assert cancelled.line_item_count == 3
        for record in records:
            assert payability(session, record.id) == UNPAID

        entry = payment_service.get_history(draft.id)[0]
        assert entry.change_type is ChangeType.CANCELLED
        assert entry.previous_status is PaymentStatus(stage)
        assert entry.remarks == "duplicate run"

    def test_released_records_can_be_paid_again(self, payment_service, evaluated_records):
        records = evaluated_records(2)
        first = payment_service.create_draft(1, 2024, record_ids=ids(records))
        payment_service.submit(first.id)
        payment_service.cancel(first.id, "rates wrong")

        second = payment_service.create_draft(1, 2024, record_ids=ids(records))
        assert second.line_item_count == 2

    def test_cancel_twice(self, payment_service):
        draft = payment_service.create_draft(1, 2024)
        payment_service.cancel(draft.id, "not needed")

        with pytest.raises(AlreadyCancelledError):
            payment_service.cancel(draft.id, "again")

    @pytest.mark.parametrize("reason", ["", "  "])
    def test_reason_required(self, payment_service, reason):
        draft = payment_service.create_draft(1, 2024)
        with pytest.raises(MissingReasonError):
            payment_service.cancel(draft.id, reason)
        assert payment_service.get_payment(draft.id).status is PaymentStatus.DRAFT


class TestDeleteDraft:
    def test_delete_purges_and_releases(self, payment_service, evaluated_records, session):
        records = evaluated_records(2)
        draft = payment_service.create_draft(1, 2024, record_ids=ids(records))
        payment_service.update_payment(draft.id, remarks="to be deleted")

        payment_service.delete_draft(draft.id)

        with pytest.raises(PaymentNotFoundError):
            payment_service.get_payment(draft.id)
        with pytest.raises(PaymentNotFoundError):
            payment_service.get_history(draft.id)
        for record in records:
            assert payability(session, record.id) == UNPAID

    def test_period_free_after_delete(self, payment_service):
        draft = payment_service.create_draft(1, 2024)
        payment_service.delete_draft(draft.id)
        payment_service.create_draft(1, 2024)

    def test_submitted_payment_cannot_be_deleted(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)

        with pytest.raises(NotDraftError):
            payment_service.delete_draft(draft.id)
        assert payment_service.get_payment(draft.id).status is PaymentStatus.PENDING_APPROVAL


class TestReevaluateDraft:
    def test_picks_up_new_evaluation(
        self, payment_service, work_record_service, evaluated_records, session
    ):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])

        work_record_service.evaluate(record.id, Decimal("100"), TEST_ACTOR_ID)
        session.commit()
        payment = payment_service.reevaluate_draft(draft.id)

        assert payment.total_amount == Decimal("500.00")
        entry = payment_service.get_history(draft.id)[0]
        assert entry.change_type is ChangeType.REEVALUATED
        assert entry.previous_amount == Decimal("450.00")
        assert entry.new_amount == Decimal("500.00")

    def test_picks_up_salary_change(
        self, payment_service, salary_service, evaluated_records, payroll_setup, session
    ):
        worker, _, _, _ = payroll_setup
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])

        raised = salary_service.update_salary(
            worker.id,
            Decimal("7000"),
            RateBasis.WEEKLY,
            date(2023, 12, 1),
            TEST_ACTOR_ID,
            reason_for_change="annual revision",
        )
        session.commit()
        payment = payment_service.reevaluate_draft(draft.id)

        (line,) = payment.line_items
        assert line.salary_record_id == raised.id
        assert line.amount == Decimal("900.00")
        assert payment.total_amount == Decimal("900.00")

    def test_refused_after_submit(self, payment_service, evaluated_records):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)

        with pytest.raises(NotDraftError):
            payment_service.reevaluate_draft(draft.id)


class TestUpdatePayment:
    def test_title_and_remarks(self, payment_service):
        draft = payment_service.create_draft(1, 2024)

        payment = payment_service.update_payment(
            draft.id, title="January, estate A", remarks="includes overtime"
        )

        assert payment.title == "January, estate A"
        assert payment.remarks == "includes overtime"
        entry = payment_service.get_history(draft.id)[0]
        assert entry.change_type is ChangeType.REMARKS_UPDATED
        assert entry.description == "Updated title, remarks"

    def test_no_change_no_history(self, payment_service):
        draft = payment_service.create_draft(1, 2024)

        payment_service.update_payment(draft.id, title=draft.title)

        assert len(payment_service.get_history(draft.id)) == 1

    def test_refused_after_cancel(self, payment_service):
        draft = payment_service.create_draft(1, 2024)
        payment_service.cancel(draft.id, "abandoned")

        with pytest.raises(NotDraftError):
            payment_service.update_payment(draft.id, remarks="late note")


class TestHistory:
    def test_newest_first_with_actor(self, payment_service, evaluated_records, deterministic_clock):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024)
        deterministic_clock.advance(60)
        payment_service.add_line_item(draft.id, record.id)
        deterministic_clock.advance(60)
        payment_service.submit(draft.id)

        history = payment_service.get_history(draft.id)

        assert [h.sequence for h in history] == [3, 2, 1]
        assert history[0].changed_at > history[1].changed_at > history[2].changed_at
        assert history[0].previous_status is PaymentStatus.DRAFT
        assert history[0].new_status is PaymentStatus.PENDING_APPROVAL
        assert all(h.actor == TEST_ACTOR_ID for h in history)
        assert all(h.origin == TEST_ORIGIN for h in history)

    def test_added_amounts(self, payment_service, evaluated_records):
        first, second = evaluated_records(2)
        draft = payment_service.create_draft(1, 2024, record_ids=[first.id])
        payment_service.add_line_item(draft.id, second.id)

        entry = payment_service.get_history(draft.id)[0]
        assert entry.previous_amount == Decimal("450.00")
        assert entry.new_amount == Decimal("900.00")


class TestOperationAuditLog:
    def test_success_entry(self, payment_service, session):
        draft = payment_service.create_draft(1, 2024)

        (entry,) = AuditLogSelector(session).list_entries(entity_id=draft.id)
        assert entry.operation is AuditOperation.CREATE
        assert entry.outcome is AuditOutcome.SUCCESS
        assert entry.method_name == "PaymentService.create_draft"
        assert entry.entity_type == "Payment"
        assert entry.actor == TEST_ACTOR_ID
        assert entry.origin == TEST_ORIGIN
        assert entry.user_agent == "pytest"
        assert entry.correlation_id is not None

    def test_failure_entry_survives_rollback(self, payment_service, session):
        draft = payment_service.create_draft(1, 2024)

        with pytest.raises(NoLineItemsError):
            payment_service.submit(draft.id)

        entries = AuditLogSelector(session).list_entries(entity_id=draft.id)
        failures = [e for e in entries if e.outcome is AuditOutcome.FAILURE]
        assert len(failures) == 1
        assert failures[0].operation is AuditOperation.SUBMIT
        assert failures[0].error_code == "NO_LINE_ITEMS"
        assert str(draft.id) in failures[0].error_message

    def test_operation_logs(self, payment_service, evaluated_records, captured_logs):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)

        logs = captured_logs()
        messages = [r["message"] for r in logs]
        assert "payment_submitted" in messages
        assert "work_record_locked" in messages

        submitted = next(r for r in logs if r["message"] == "payment_submitted")
        assert submitted["records_locked"] == 1
        assert submitted["snapshots_captured"] == 1
        assert submitted["actor_id"] == TEST_ACTOR_ID
        assert submitted["operation"] == "submit"
        assert submitted["method_name"] == "PaymentService.submit"
        assert submitted["entity_type"] == "Payment"
        assert submitted["entity_id"] == str(draft.id)
        assert submitted["origin"] == TEST_ORIGIN
        assert submitted["correlation_id"]

    def test_failure_logged(self, payment_service, captured_logs):
        with pytest.raises(PaymentNotFoundError):
            payment_service.approve(uuid4())

        failed = [r for r in captured_logs() if r["message"] == "payment_operation_failed"]
        assert len(failed) == 1
        assert failed[0]["error_code"] == "PAYMENT_NOT_FOUND"
        assert failed[0]["error"]["type"] == "PaymentNotFoundError"
        assert failed[0]["error"]["code"] == "PAYMENT_NOT_FOUND"
