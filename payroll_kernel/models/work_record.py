"""
Module: payroll_kernel.models.work_record
Responsibility: ORM persistence for evaluated work assignments and the hold
    columns that couple each record to at most one payment.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value enums only.

Invariants enforced:
    - ``held_by_payment_id`` is the single source of truth for payability;
      it is written only by AssignmentLockService via compare-and-swap
      UPDATE statements.
    - Work records are never hard deleted (``is_deleted`` soft delete).

Failure modes:
    - IntegrityError if ``held_by_payment_id`` references a missing payment.

Audit relevance:
    Evaluation results (percentage, actual value, duration) feed the wage
    calculation and are copied into line item snapshots at submission.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase, UUIDString
from payroll_kernel.domain.values import EvaluationStatus


class WorkRecord(TrackedBase):
    """
    A unit of work assigned to a worker on a date.

    Contract:
        Becomes payable once evaluated (status COMPLETED).  While held by a
        payment the hold columns identify the payment; ``locked_at`` is set
        once that payment is submitted for approval.

    Guarantees:
        - evaluation_count counts every evaluation, first/last_evaluated_at
          bracket them.
        - activity_name/activity_description are copied at creation.

    Non-goals:
        - Payability is not stored as a status column; it is derived by
          ``payroll_kernel.domain.payability.derive_payability``.
    """

    __tablename__ = "payroll_work_records"

    __table_args__ = (
        Index("idx_work_record_worker_date", "worker_id", "assignment_date"),
        Index("idx_work_record_held_by", "held_by_payment_id"),
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_workers.id"),
        nullable=False,
    )

    activity_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_work_activities.id"),
        nullable=False,
    )

    assignment_date: Mapped[date] = mapped_column(Date, nullable=False)

    activity_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    activity_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    evaluation_status: Mapped[EvaluationStatus] = mapped_column(
        String(20),
        default=EvaluationStatus.ASSIGNED,
        nullable=False,
    )

    completion_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(7, 2), nullable=True
    )

    actual_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)

    actual_duration_hours: Mapped[Decimal | None] = mapped_column(
        Numeric(9, 2), nullable=True
    )

    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    first_evaluated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    last_evaluated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    evaluation_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Hold columns (written only by AssignmentLockService)
    held_by_payment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_payments.id"),
        nullable=True,
    )

    held_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<WorkRecord {self.id} {self.assignment_date}: {self.evaluation_status}>"

    @property
    def is_evaluated(self) -> bool:
        return (
            self.evaluation_status == EvaluationStatus.COMPLETED
            and not self.is_deleted
        )
