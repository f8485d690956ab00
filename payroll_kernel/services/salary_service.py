"""
SalaryService -- versioned worker salary records.

Responsibility:
    Creates the first salary of a worker, changes it by closing the open
    record and opening a new one, answers "what salary applied on date X",
    and deletes closed records.

Architecture position:
    Kernel > Services -- flush-only; the caller owns the transaction.
    PaymentService reads salaries through the SalaryLookup protocol, whose
    SQL implementation shares the "in force on" rule used here.

Invariants enforced:
    - At most one open-ended record per worker (service check plus partial
      unique index).
    - A salary change never edits amounts in place: the open record gets
      end_date = new start - 1 day and is deactivated, then a new record is
      inserted.
    - The active record cannot be deleted, nor can a record referenced by a
      payment line item.

Failure modes:
    - WorkerNotFoundError, SalaryNotFoundError, NoActiveSalaryError.
    - ActiveSalaryExistsError on a second initial salary.
    - InvalidSalaryChangeError on a negative amount, a start date not after
      the current one, or a forbidden delete.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_config.schema import DEFAULT_WAGE_CONFIG, WageConfig
from payroll_kernel.db.types import to_decimal
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.dtos import SalaryInfo
from payroll_kernel.domain.values import RateBasis
from payroll_kernel.exceptions import (
    ActiveSalaryExistsError,
    InvalidSalaryChangeError,
    NoActiveSalaryError,
    SalaryNotFoundError,
    WorkerNotFoundError,
)
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.payment import PaymentLineItem
from payroll_kernel.models.salary import SalaryRecord
from payroll_kernel.models.worker import Worker
from payroll_kernel.services.base import BaseService
from payroll_kernel.services.lookups import SqlSalaryLookup

logger = get_logger("services.salary")


class SalaryService(BaseService[SalaryRecord]):
    """
    Service for worker salary versioning.

    Contract:
        Write methods flush and return ``SalaryInfo`` DTOs.  Read methods
        never flush.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: WageConfig | None = None,
    ):
        super().__init__(session, clock)
        self._config = config or DEFAULT_WAGE_CONFIG
        self._lookup = SqlSalaryLookup(session)

    def _open_record(self, worker_id: UUID) -> SalaryRecord | None:
        stmt = select(SalaryRecord).where(
            SalaryRecord.worker_id == worker_id,
            SalaryRecord.end_date.is_(None),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _validate_terms(
        self, worker_id: UUID, amount: Decimal, voluntary_pf_percent: Decimal
    ) -> None:
        if amount < 0:
            raise InvalidSalaryChangeError(worker_id, f"amount cannot be negative: {amount}")
        if not 0 <= voluntary_pf_percent <= 100:
            raise InvalidSalaryChangeError(
                worker_id,
                f"voluntary PF percentage must be between 0 and 100: {voluntary_pf_percent}",
            )

    def create_initial_salary(
        self,
        worker_id: UUID,
        amount: Decimal,
        rate_basis: RateBasis | str,
        start_date: date,
        actor_id: str,
        voluntary_pf_percent: Decimal = Decimal("0"),
        currency: str | None = None,
        notes: str | None = None,
    ) -> SalaryInfo:
        if self.session.get(Worker, worker_id) is None:
            raise WorkerNotFoundError(worker_id)
        if self._open_record(worker_id) is not None:
            raise ActiveSalaryExistsError(worker_id)

        amount = to_decimal(amount)
        voluntary_pf_percent = to_decimal(voluntary_pf_percent)
        self._validate_terms(worker_id, amount, voluntary_pf_percent)

        record = SalaryRecord(
            worker_id=worker_id,
            amount=amount,
            rate_basis=RateBasis(rate_basis).value,
            voluntary_pf_percent=voluntary_pf_percent,
            currency=currency or self._config.default_currency,
            start_date=start_date,
            end_date=None,
            is_active=True,
            notes=notes,
            created_by=actor_id,
        )
        self.session.add(record)
        self.session.flush()

        logger.info(
            "salary_created",
            extra={
                "worker_id": str(worker_id),
                "amount": amount,
                "rate_basis": record.rate_basis,
                "start_date": start_date,
            },
        )
        return SalaryInfo.from_model(record)

    def update_salary(
        self,
        worker_id: UUID,
        amount: Decimal,
        rate_basis: RateBasis | str,
        start_date: date,
        actor_id: str,
        reason_for_change: str | None = None,
        voluntary_pf_percent: Decimal | None = None,
        notes: str | None = None,
    ) -> SalaryInfo:
        """
        Close the open salary record and open a new one from ``start_date``.

        ``voluntary_pf_percent`` defaults to the value of the closed record.
        """
        current = self._open_record(worker_id)
        if current is None:
            raise NoActiveSalaryError(worker_id)
        if start_date <= current.start_date:
            raise InvalidSalaryChangeError(
                worker_id,
                f"new start date {start_date} must be after {current.start_date}",
            )

        amount = to_decimal(amount)
        if voluntary_pf_percent is None:
            voluntary_pf_percent = current.voluntary_pf_percent
        voluntary_pf_percent = to_decimal(voluntary_pf_percent)
        self._validate_terms(worker_id, amount, voluntary_pf_percent)

        current.end_date = start_date - timedelta(days=1)
        current.is_active = False
        current.updated_by = actor_id
        self.session.flush()

        record = SalaryRecord(
            worker_id=worker_id,
            amount=amount,
            rate_basis=RateBasis(rate_basis).value,
            voluntary_pf_percent=voluntary_pf_percent,
            currency=current.currency,
            start_date=start_date,
            end_date=None,
            is_active=True,
            reason_for_change=reason_for_change,
            notes=notes,
            created_by=actor_id,
        )
        self.session.add(record)
        self.session.flush()

        logger.info(
            "salary_updated",
            extra={
                "worker_id": str(worker_id),
                "previous_salary_id": str(current.id),
                "amount": amount,
                "start_date": start_date,
            },
        )
        return SalaryInfo.from_model(record)

    def get_current_salary(self, worker_id: UUID) -> SalaryInfo | None:
        record = self._open_record(worker_id)
        return SalaryInfo.from_model(record) if record is not None else None

    def get_salary_on_date(self, worker_id: UUID, as_of: date) -> SalaryInfo | None:
        record = self._lookup.current_salary(worker_id, as_of)
        return SalaryInfo.from_model(record) if record is not None else None

    def get_salary_history(self, worker_id: UUID) -> list[SalaryInfo]:
        """All salary records of a worker, newest start date first."""
        stmt = (
            select(SalaryRecord)
            .where(SalaryRecord.worker_id == worker_id)
            .order_by(SalaryRecord.start_date.desc())
        )
        return [SalaryInfo.from_model(r) for r in self.session.scalars(stmt)]

    def delete_salary_record(self, salary_id: UUID, actor_id: str) -> None:
        record = self.session.get(SalaryRecord, salary_id)
        if record is None:
            raise SalaryNotFoundError(salary_id)
        if record.is_active or record.end_date is None:
            raise InvalidSalaryChangeError(
                record.worker_id, "the active salary record cannot be deleted"
            )

        in_use = self.session.scalar(
            select(func.count())
            .select_from(PaymentLineItem)
            .where(PaymentLineItem.salary_record_id == salary_id)
        )
        if in_use:
            raise InvalidSalaryChangeError(
                record.worker_id,
                f"salary record {salary_id} is referenced by {in_use} payment line items",
            )

        self.session.delete(record)
        self.session.flush()
        logger.info(
            "salary_record_deleted",
            extra={"salary_id": str(salary_id), "actor_id": actor_id},
        )
