"""
Module: payroll_kernel.models.payment
Responsibility: ORM persistence for the payment aggregate: the Payment root,
    its ordered line items and its attached documents.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value enums only.

Invariants enforced:
    - At most one DRAFT payment per (month, year): partial unique index
      ``uq_payment_draft_period`` (backs the PaymentService check).
    - ``total_amount == sum(line.amount)`` after every structural change;
      ``recalculate_total()`` recomputes it from the lines.
    - A work record appears at most once per payment
      (``uq_line_item_payment_record``).
    - PAID / CANCELLED payments and captured line items are immutable
      (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on a second draft for the same period.
    - ImmutabilityViolationError on modification of a terminal payment or a
      captured line item.

Audit relevance:
    Actor/timestamp pairs record who created, submitted, approved, paid and
    cancelled each payment; the history ledger records every change.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import Base, TrackedBase, UUIDString
from payroll_kernel.domain.payment_workflow import PaymentStatus
from payroll_kernel.domain.values import DocumentType

if TYPE_CHECKING:
    from payroll_kernel.models.payment_history import PaymentHistoryEntry


class Payment(TrackedBase):
    """
    A periodic wage payment: the aggregate root.

    Contract:
        Owns its line items, documents and history.  All structural changes
        go through PaymentService, which appends a history entry for each.

    Guarantees:
        - status follows PAYMENT_WORKFLOW.
        - total_amount is recomputed, never incrementally patched.

    Non-goals:
        - Does not enforce transition rules itself; see
          ``payroll_kernel.domain.payment_workflow``.
    """

    __tablename__ = "payroll_payments"

    __table_args__ = (
        Index(
            "uq_payment_draft_period",
            "month",
            "year",
            unique=True,
            postgresql_where=text("status = 'draft'"),
            sqlite_where=text("status = 'draft'"),
        ),
        Index("idx_payment_status", "status"),
        Index("idx_payment_period", "year", "month"),
    )

    status: Mapped[PaymentStatus] = mapped_column(
        String(30),
        default=PaymentStatus.DRAFT,
        nullable=False,
    )

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    title: Mapped[str | None] = mapped_column(String(200), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), default=Decimal("0"), nullable=False
    )

    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    paid_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    cancelled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    line_items: Mapped[list[PaymentLineItem]] = relationship(
        "PaymentLineItem",
        back_populates="payment",
        order_by="PaymentLineItem.position",
        cascade="all, delete-orphan",
    )

    documents: Mapped[list[PaymentDocument]] = relationship(
        "PaymentDocument",
        back_populates="payment",
        cascade="all, delete-orphan",
    )

    history: Mapped[list[PaymentHistoryEntry]] = relationship(
        "PaymentHistoryEntry",
        back_populates="payment",
        order_by="PaymentHistoryEntry.sequence",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Payment {self.month}/{self.year}: {self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == PaymentStatus.DRAFT

    def recalculate_total(self) -> Decimal:
        """Recompute total_amount from the line items and return it."""
        self.total_amount = sum(
            (li.amount for li in self.line_items), Decimal("0")
        )
        return self.total_amount

    def next_position(self) -> int:
        return max((li.position for li in self.line_items), default=0) + 1


class PaymentLineItem(TrackedBase):
    """
    One work record paid by a payment.

    Contract:
        Calculated columns come from the wage calculator at add/re-evaluate
        time.  ``snapshot_*`` columns are written once at submission together
        with ``snapshot_captured_at``.

    Guarantees:
        - Unique per (payment, work record).
        - After capture, snapshot and calculated columns never change.
    """

    __tablename__ = "payroll_payment_line_items"

    __table_args__ = (
        UniqueConstraint(
            "payment_id", "work_record_id", name="uq_line_item_payment_record"
        ),
        Index("idx_line_item_work_record", "work_record_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_payments.id"),
        nullable=False,
    )

    work_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_work_records.id"),
        nullable=False,
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_workers.id"),
        nullable=False,
    )

    activity_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_work_activities.id"),
        nullable=True,
    )

    # Salary record in force when the amounts were computed
    salary_record_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_salary_records.id"),
        nullable=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    assignment_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Calculated columns
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    employee_pf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    voluntary_pf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    employer_pf: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    pf_total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), default=Decimal("0"), nullable=False
    )
    net_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Snapshot columns
    snapshot_worker_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    snapshot_worker_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    snapshot_worker_pf_account_id: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    snapshot_salary_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )
    snapshot_salary_rate_basis: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )
    snapshot_employee_pf_percent: Mapped[Decimal | None] = mapped_column(
        Numeric(9, 4), nullable=True
    )
    snapshot_voluntary_pf_percent: Mapped[Decimal | None] = mapped_column(
        Numeric(9, 4), nullable=True
    )
    snapshot_employer_pf_percent: Mapped[Decimal | None] = mapped_column(
        Numeric(9, 4), nullable=True
    )
    snapshot_activity_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    snapshot_activity_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    snapshot_criteria_unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    snapshot_criteria_value: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 4), nullable=True
    )
    snapshot_completion_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(7, 2), nullable=True
    )
    snapshot_actual_value: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 4), nullable=True
    )
    snapshot_actual_duration_hours: Mapped[Decimal | None] = mapped_column(
        Numeric(9, 2), nullable=True
    )
    snapshot_completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    snapshot_completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    snapshot_captured_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    payment: Mapped[Payment] = relationship("Payment", back_populates="line_items")

    def __repr__(self) -> str:
        return f"<PaymentLineItem {self.work_record_id}: {self.amount}>"

    @property
    def is_snapshot_captured(self) -> bool:
        return self.snapshot_captured_at is not None


class PaymentDocument(Base):
    """Supporting document (challan, receipt, bank statement) for a payment."""

    __tablename__ = "payroll_payment_documents"

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_payments.id"),
        nullable=False,
    )

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)

    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    file_size: Mapped[int] = mapped_column(Integer, nullable=False)

    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    document_type: Mapped[DocumentType] = mapped_column(
        String(30), default=DocumentType.OTHER, nullable=False
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    uploaded_by: Mapped[str] = mapped_column(String(100), nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payment: Mapped[Payment] = relationship("Payment", back_populates="documents")

    def __repr__(self) -> str:
        return f"<PaymentDocument {self.file_name} ({self.file_size} bytes)>"
