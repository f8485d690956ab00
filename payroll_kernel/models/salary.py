"""
Module: payroll_kernel.models.salary
Responsibility: ORM persistence for versioned worker salary records.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value enums only.

Invariants enforced:
    - At most one record per worker has a NULL end_date (partial unique
      index ``uq_salary_open_per_worker``).
    - Salary records are never updated in place: a change closes the open
      record (end_date = new start - 1 day, inactive) and inserts a new one.

Failure modes:
    - IntegrityError on a second open-ended record for the same worker.

Audit relevance:
    Line items reference the salary record used for their calculation, and
    the snapshot copies its amount, basis and voluntary PF percentage.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString
from payroll_kernel.domain.values import RateBasis


class SalaryRecord(TrackedBase):
    """
    One version of a worker's salary.

    Guarantees:
        - [start_date, end_date] is inclusive; end_date NULL is open-ended.
        - voluntary_pf_percent is a percentage (2.00 means 2%).
    """

    __tablename__ = "payroll_salary_records"

    __table_args__ = (
        Index(
            "uq_salary_open_per_worker",
            "worker_id",
            unique=True,
            postgresql_where=text("end_date IS NULL"),
            sqlite_where=text("end_date IS NULL"),
        ),
        Index("idx_salary_worker_start", "worker_id", "start_date"),
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_workers.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    rate_basis: Mapped[RateBasis] = mapped_column(String(20), nullable=False)

    voluntary_pf_percent: Mapped[Decimal] = mapped_column(
        Numeric(9, 4), default=Decimal("0"), nullable=False
    )

    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    reason_for_change: Mapped[str | None] = mapped_column(String(500), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<SalaryRecord {self.worker_id}: {self.amount} {self.rate_basis} "
            f"from {self.start_date}>"
        )

    def in_force_on(self, as_of: date) -> bool:
        if as_of < self.start_date:
            return False
        return self.end_date is None or as_of <= self.end_date
