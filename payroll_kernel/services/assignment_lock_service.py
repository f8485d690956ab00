"""
AssignmentLockService -- persists the work record lock protocol.

Responsibility:
    Applies the pure payability transitions (include, lock, unlock) to
    ``WorkRecord`` rows with compare-and-swap UPDATE statements, so that a
    work record is held by at most one active payment even when several
    sessions race for it.

Architecture position:
    Kernel > Services -- imperative shell around
    ``payroll_kernel.domain.payability``.  Called only by PaymentService
    (include on add, lock on submit, release on remove/cancel/delete).

Invariants enforced:
    - include: ``UPDATE ... WHERE id = :rid AND held_by_payment_id IS NULL``.
    - lock: ``... WHERE id = :rid AND held_by_payment_id = :pid AND
      locked_at IS NULL``.
    - unlock: ``... WHERE id = :rid AND held_by_payment_id = :pid``.
    - A zero row count is a conflict and is raised, never retried.
    - Only evaluated, non-deleted records can be included.

Failure modes:
    - WorkRecordNotFoundError: record does not exist.
    - RecordNotEvaluatedError: record is not COMPLETED (or soft deleted).
    - RecordAlreadyHeldError: another payment holds the record, or lost the
      compare-and-swap race.
    - PaidRecordUnlockError: release of a record paid by the payment.

Audit relevance:
    Every include/lock/unlock is logged with record_id and payment_id.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from payroll_kernel.domain import payability as transitions
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.payability import Payability
from payroll_kernel.exceptions import (
    RecordAlreadyHeldError,
    RecordNotEvaluatedError,
    WorkRecordNotFoundError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.work_record import WorkRecord
from payroll_kernel.selectors.payment_selector import PaymentSelector
from payroll_kernel.services.base import BaseService

logger = get_logger("services.assignment_lock")

_HOLD_COLUMNS = ("held_by_payment_id", "held_at", "locked_at")


class AssignmentLockService(BaseService[WorkRecord]):
    """
    Compare-and-swap persistence of work record holds.

    Contract:
        Each method validates the transition against the derived
        payability first (for a precise error), then issues a guarded
        UPDATE and checks its row count.

    Guarantees:
        - At most one payment holds a record at any time.
        - In-session WorkRecord instances are expired after each UPDATE so
          the next read sees the persisted hold columns.

    Non-goals:
        - Does not commit; PaymentService owns the transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._selector = PaymentSelector(session)

    def record_payability(self, record_id: UUID) -> Payability:
        return self._selector.record_payability(record_id)

    def _load_record(self, record_id: UUID) -> WorkRecord:
        record = self.session.get(WorkRecord, record_id)
        if record is None:
            raise WorkRecordNotFoundError(record_id)
        return record

    def _compare_and_swap(self, record_id: UUID, *criteria, **values) -> int:
        stmt = (
            update(WorkRecord)
            .where(WorkRecord.id == record_id, *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        rowcount = self.session.execute(stmt).rowcount
        record = self.session.identity_map.get(
            self.session.identity_key(WorkRecord, record_id)
        )
        if record is not None:
            self.session.expire(record, list(_HOLD_COLUMNS))
        return rowcount

    def _conflict(self, record_id: UUID, payment_id: UUID) -> RecordAlreadyHeldError:
        current = self.record_payability(record_id)
        logger.warning(
            "work_record_hold_conflict",
            extra={
                "record_id": str(record_id),
                "payment_id": str(payment_id),
                "held_by_payment_id": (
                    str(current.payment_id) if current.payment_id is not None else None
                ),
            },
        )
        return RecordAlreadyHeldError(record_id, payment_id, current.payment_id)

    def include(self, record_id: UUID, payment_id: UUID) -> Payability:
        """UNPAID -> DRAFT_HELD(payment_id)."""
        record = self._load_record(record_id)
        if not record.is_evaluated:
            status = (
                "deleted"
                if record.is_deleted
                else getattr(record.evaluation_status, "value", record.evaluation_status)
            )
            raise RecordNotEvaluatedError(record_id, status)

        target = transitions.include(self.record_payability(record_id), payment_id, record_id)

        rowcount = self._compare_and_swap(
            record_id,
            WorkRecord.held_by_payment_id.is_(None),
            held_by_payment_id=payment_id,
            held_at=self.clock.now(),
            locked_at=None,
        )
        if rowcount != 1:
            raise self._conflict(record_id, payment_id)

        logger.info(
            "work_record_included",
            extra={"record_id": str(record_id), "payment_id": str(payment_id)},
        )
        return target

    def lock(self, record_id: UUID, payment_id: UUID) -> Payability:
        """DRAFT_HELD(payment_id) -> LOCKED(payment_id)."""
        self._load_record(record_id)
        target = transitions.lock(self.record_payability(record_id), payment_id, record_id)

        rowcount = self._compare_and_swap(
            record_id,
            WorkRecord.held_by_payment_id == payment_id,
            WorkRecord.locked_at.is_(None),
            locked_at=self.clock.now(),
        )
        if rowcount != 1:
            raise self._conflict(record_id, payment_id)

        logger.info(
            "work_record_locked",
            extra={"record_id": str(record_id), "payment_id": str(payment_id)},
        )
        return target

    def unlock(self, record_id: UUID, payment_id: UUID) -> Payability:
        """Release a record held by ``payment_id`` back to UNPAID."""
        self._load_record(record_id)
        current = self.record_payability(record_id)
        target = transitions.unlock(current, payment_id, record_id)
        if not current.is_held:
            return target

        rowcount = self._compare_and_swap(
            record_id,
            WorkRecord.held_by_payment_id == payment_id,
            held_by_payment_id=None,
            held_at=None,
            locked_at=None,
        )
        if rowcount != 1:
            raise self._conflict(record_id, payment_id)

        logger.info(
            "work_record_unlocked",
            extra={"record_id": str(record_id), "payment_id": str(payment_id)},
        )
        return target

    def lock_all(self, payment_id: UUID, record_ids: list[UUID]) -> int:
        for record_id in record_ids:
            self.lock(record_id, payment_id)
        return len(record_ids)

    def release_all(self, payment_id: UUID) -> int:
        """Unlock every record currently held by ``payment_id``."""
        held = list(
            self.session.scalars(
                select(WorkRecord.id).where(WorkRecord.held_by_payment_id == payment_id)
            )
        )
        for record_id in held:
            self.unlock(record_id, payment_id)
        if held:
            logger.info(
                "work_records_released",
                extra={"payment_id": str(payment_id), "count": len(held)},
            )
        return len(held)
