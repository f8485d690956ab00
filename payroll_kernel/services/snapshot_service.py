"""
SnapshotService -- freezes the facts behind line items at submission.

Responsibility:
    Loads the live worker, salary, activity, criteria and work record behind
    each line item of a payment and writes a ``LineItemSnapshot`` onto it.

Architecture position:
    Kernel > Services -- imperative shell around
    ``payroll_kernel.domain.snapshot``.  Called by PaymentService.submit
    after the records have been locked.

Invariants enforced:
    - Each line item is snapshotted at most once; a second capture is a
      no-op.
    - The salary frozen is the record the amounts were computed with
      (``line_item.salary_record_id``); PaymentService reprices the line
      items immediately before capture.
    - Criteria are those in force on the assignment date.

Failure modes:
    - WorkRecordNotFoundError / WorkerNotFoundError if a source row vanished.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from payroll_config.schema import DEFAULT_WAGE_CONFIG, WageConfig
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.snapshot import apply_snapshot, build_snapshot
from payroll_kernel.exceptions import WorkerNotFoundError, WorkRecordNotFoundError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.payment import Payment, PaymentLineItem
from payroll_kernel.models.salary import SalaryRecord
from payroll_kernel.models.work_record import WorkRecord
from payroll_kernel.models.worker import WorkActivity, Worker
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.lookups import CriteriaLookup, SqlCriteriaLookup

logger = get_logger("services.snapshot")


class SnapshotService(BaseService[PaymentLineItem]):
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

    def capture_snapshot(
        self,
        line_item: PaymentLineItem,
        worker: Any,
        salary: Any | None,
        activity: Any | None,
        criteria: Any | None,
        record: Any,
    ) -> bool:
        """Write the snapshot onto ``line_item``; False if already captured."""
        snapshot = build_snapshot(
            worker=worker,
            salary=salary,
            activity=activity,
            criteria=criteria,
            record=record,
            employee_pf_percent=self._config.employee_pf_percent,
            employer_pf_percent=self._config.employer_pf_percent,
        )
        written = apply_snapshot(line_item, snapshot, self.clock.now())
        if not written:
            logger.debug(
                "snapshot_already_captured",
                extra={"line_item_id": str(line_item.id)},
            )
        return written

    def capture_for_payment(self, payment: Payment) -> int:
        """Snapshot every line item of ``payment``; returns how many were written."""
        captured = 0
        for line_item in payment.line_items:
            record = self.session.get(WorkRecord, line_item.work_record_id)
            if record is None:
                raise WorkRecordNotFoundError(line_item.work_record_id)
            worker = self.session.get(Worker, line_item.worker_id)
            if worker is None:
                raise WorkerNotFoundError(line_item.worker_id)
            salary = (
                self.session.get(SalaryRecord, line_item.salary_record_id)
                if line_item.salary_record_id is not None
                else None
            )
            activity = (
                self.session.get(WorkActivity, line_item.activity_id)
                if line_item.activity_id is not None
                else None
            )
            criteria = (
                self._criteria.active_criteria(line_item.activity_id, record.assignment_date)
                if line_item.activity_id is not None
                else None
            )
            if self.capture_snapshot(line_item, worker, salary, activity, criteria, record):
                captured += 1

        self.session.flush()
        logger.info(
            "line_item_snapshots_captured",
            extra={"payment_id": str(payment.id), "count": captured},
        )
        return captured
