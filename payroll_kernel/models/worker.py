"""
Module: payroll_kernel.models.worker
Responsibility: Minimal master data consumed read-only by the payroll core:
    workers, work activities and the completion criteria that measure them.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value enums only.

Invariants enforced:
    - Criteria validity intervals are inclusive; end_date NULL means open-ended.

Audit relevance:
    Worker and activity facts are copied into line item snapshots at
    submission, so later edits here never change an approved payment.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString
from payroll_kernel.domain.values import CriteriaUnit


class Worker(TrackedBase):
    """A piece/time-rate worker."""

    __tablename__ = "payroll_workers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Provident fund account identifier
    pf_account_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Worker {self.name}>"


class WorkActivity(TrackedBase):
    """A kind of work that can be assigned (e.g. plucking, pruning)."""

    __tablename__ = "payroll_work_activities"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<WorkActivity {self.name}>"


class CompletionCriteria(TrackedBase):
    """
    Target quantity an activity is measured against.

    Contract:
        A criteria row is "in force" on a date when it is active and the date
        lies in [start_date, end_date] (end_date NULL means open-ended).

    Non-goals:
        - Overlap between criteria of the same activity is not prevented; the
          most recent start_date wins on lookup.
    """

    __tablename__ = "payroll_completion_criteria"

    __table_args__ = (
        Index("idx_criteria_activity_dates", "activity_id", "start_date"),
    )

    activity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_work_activities.id"),
        nullable=False,
    )

    unit: Mapped[CriteriaUnit] = mapped_column(String(20), nullable=False)

    # Target quantity in ``unit`` representing 100% completion
    value: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CompletionCriteria {self.activity_id}: {self.value} {self.unit}>"

    def in_force_on(self, as_of: date) -> bool:
        if not self.is_active or as_of < self.start_date:
            return False
        return self.end_date is None or as_of <= self.end_date
