"""
WorkRecordService -- assignment and evaluation of work records.

Responsibility:
    Assigns an activity to a worker on a date and records the evaluation
    (completion percentage directly, or derived from an actual measured
    value against the completion criteria in force).

Architecture position:
    Kernel > Services -- flush-only; the caller owns the transaction.
    Consults AssignmentLockService for the derived payability of a record
    before changing it.

Invariants enforced:
    - A record that is LOCKED, APPROVED or PAID cannot be re-evaluated or
      deleted; a DRAFT_HELD record may be re-evaluated (the draft is then
      re-evaluated through PaymentService.reevaluate_draft).
    - evaluation_count counts evaluations; first/last_evaluated_at bracket
      them.
    - Derived percentages are capped at 100.
    - Work records are soft deleted only.

Failure modes:
    - WorkerNotFoundError, ActivityNotFoundError, WorkRecordNotFoundError.
    - InvalidCompletionPercentageError: percentage outside 0..100, or a
      negative actual value.
    - CriteriaNotFoundError: no usable criteria for evaluation by value.
    - RecordLockedError: record is frozen by a payment.
    - RecordAlreadyHeldError: soft delete of a record held by a draft.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_config.schema import DEFAULT_WAGE_CONFIG, WageConfig
from payroll_kernel.db.types import round_money, to_decimal
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import WorkRecordInfo
from payroll_kernel.domain.payability import ensure_editable
from payroll_kernel.domain.values import EvaluationStatus
from payroll_kernel.domain.wage_calculator import completion_rate
from payroll_kernel.exceptions import (
    ActivityNotFoundError,
    CriteriaNotFoundError,
    InvalidCompletionPercentageError,
    RecordAlreadyHeldError,
    WorkerNotFoundError,
    WorkRecordNotFoundError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.work_record import WorkRecord
from payroll_kernel.models.worker import WorkActivity, Worker
from payroll_kernel.services.assignment_lock_service import AssignmentLockService
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.lookups import CriteriaLookup, SqlCriteriaLookup

logger = get_logger("services.work_record")

_HUNDRED = Decimal("100")


class WorkRecordService(BaseService[WorkRecord]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        criteria_lookup: CriteriaLookup | None = None,
        config: WageConfig | None = None,
    ):
        super().__init__(session, clock)
        self._criteria = criteria_lookup or SqlCriteriaLookup(session)
        self._config = config or DEFAULT_WAGE_CONFIG
        self._locks = AssignmentLockService(session, self.clock)

    def _to_dto(self, record: WorkRecord) -> WorkRecordInfo:
        return WorkRecordInfo.from_model(record, self._locks.record_payability(record.id))

    def _get_live_record(self, record_id: UUID) -> WorkRecord:
        record = self.session.get(WorkRecord, record_id)
        if record is None or record.is_deleted:
            raise WorkRecordNotFoundError(record_id)
        return record

    def get_record(self, record_id: UUID) -> WorkRecordInfo:
        record = self.session.get(WorkRecord, record_id)
        if record is None:
            raise WorkRecordNotFoundError(record_id)
        return self._to_dto(record)

    def assign_work(
        self,
        worker_id: UUID,
        activity_id: UUID,
        assignment_date: date,
        actor_id: str,
    ) -> WorkRecordInfo:
        if self.session.get(Worker, worker_id) is None:
            raise WorkerNotFoundError(worker_id)
        activity = self.session.get(WorkActivity, activity_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)

        record = WorkRecord(
            worker_id=worker_id,
            activity_id=activity_id,
            assignment_date=assignment_date,
            activity_name=activity.name,
            activity_description=activity.description,
            evaluation_status=EvaluationStatus.ASSIGNED.value,
            evaluation_count=0,
            is_deleted=False,
            created_by=actor_id,
        )
        self.session.add(record)
        self.session.flush()

        logger.info(
            "work_assigned",
            extra={
                "record_id": str(record.id),
                "worker_id": str(worker_id),
                "activity_id": str(activity_id),
                "assignment_date": assignment_date,
            },
        )
        return self._to_dto(record)

    def evaluate(
        self,
        record_id: UUID,
        completion_percentage: Decimal,
        actor_id: str,
        actual_value: Decimal | None = None,
        actual_duration_hours: Decimal | None = None,
        completion_notes: str | None = None,
        completed_date: date | None = None,
    ) -> WorkRecordInfo:
        """Record (or revise) the evaluation of a work record."""
        record = self._get_live_record(record_id)
        ensure_editable(self._locks.record_payability(record_id), record_id, "evaluate")

        percentage = to_decimal(completion_percentage)
        completion_rate(percentage, self._config)

        now = self.clock.now()
        record.evaluation_status = EvaluationStatus.COMPLETED.value
        record.completion_percentage = percentage
        record.actual_value = to_decimal(actual_value) if actual_value is not None else None
        record.actual_duration_hours = (
            to_decimal(actual_duration_hours) if actual_duration_hours is not None else None
        )
        record.completion_notes = completion_notes
        record.completed_date = completed_date or self.clock.today()
        record.evaluation_count = (record.evaluation_count or 0) + 1
        if record.first_evaluated_at is None:
            record.first_evaluated_at = now
        record.last_evaluated_at = now
        record.updated_by = actor_id
        self.session.flush()

        logger.info(
            "work_record_evaluated",
            extra={
                "record_id": str(record_id),
                "completion_percentage": percentage,
                "evaluation_count": record.evaluation_count,
            },
        )
        return self._to_dto(record)

    def evaluate_by_actual_value(
        self,
        record_id: UUID,
        actual_value: Decimal,
        actor_id: str,
        actual_duration_hours: Decimal | None = None,
        completion_notes: str | None = None,
        completed_date: date | None = None,
    ) -> WorkRecordInfo:
        """
        Evaluate from a measured quantity.

        percentage = actual / criteria value x 100, rounded to 2 places and
        capped at 100.  Criteria are those in force on the assignment date.
        """
        record = self._get_live_record(record_id)
        actual = to_decimal(actual_value)
        if actual < 0:
            raise InvalidCompletionPercentageError(actual)

        criteria = self._criteria.active_criteria(record.activity_id, record.assignment_date)
        if criteria is None or to_decimal(criteria.value) <= 0:
            raise CriteriaNotFoundError(record.activity_id, record.assignment_date)

        percentage = min(
            round_money(actual / to_decimal(criteria.value) * _HUNDRED, 2), _HUNDRED
        )
        return self.evaluate(
            record_id,
            percentage,
            actor_id,
            actual_value=actual,
            actual_duration_hours=actual_duration_hours,
            completion_notes=completion_notes,
            completed_date=completed_date,
        )

    def soft_delete(self, record_id: UUID, actor_id: str) -> WorkRecordInfo:
        record = self._get_live_record(record_id)
        current = self._locks.record_payability(record_id)
        ensure_editable(current, record_id, "delete")
        if current.is_held:
            raise RecordAlreadyHeldError(record_id, None, current.payment_id)

        record.is_deleted = True
        record.deleted_at = self.clock.now()
        record.updated_by = actor_id
        self.session.flush()

        logger.info("work_record_deleted", extra={"record_id": str(record_id)})
        return self._to_dto(record)
