"""
Module: payroll_kernel.models.payment_history
Responsibility: ORM persistence for the append-only payment history ledger.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value enums only.

Invariants enforced:
    - Append-only: UPDATE is always refused and DELETE is refused except
      while PaymentService.delete_draft purges a DRAFT payment (ORM
      listeners in db/immutability.py).
    - ``sequence`` is dense per payment (1, 2, 3, ...) and unique with
      payment_id; it orders entries when clock timestamps tie.

Failure modes:
    - ImmutabilityViolationError on UPDATE or on DELETE outside a draft purge.
    - IntegrityError on a duplicate (payment_id, sequence).

Audit relevance:
    One entry per state-changing operation with actor, origin, before/after
    status and before/after total.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import Base, UUIDString
from payroll_kernel.domain.values import ChangeType

if TYPE_CHECKING:
    from payroll_kernel.models.payment import Payment


class PaymentHistoryEntry(Base):
    """One immutable entry in a payment's history."""

    __tablename__ = "payroll_payment_history"

    __table_args__ = (
        UniqueConstraint("payment_id", "sequence", name="uq_payment_history_sequence"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_payments.id"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    change_type: Mapped[ChangeType] = mapped_column(String(30), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    previous_status: Mapped[str | None] = mapped_column(String(30), nullable=True)

    new_status: Mapped[str | None] = mapped_column(String(30), nullable=True)

    previous_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )

    new_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    actor: Mapped[str] = mapped_column(String(100), nullable=False)

    origin: Mapped[str | None] = mapped_column(String(100), nullable=True)

    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    payment: Mapped[Payment] = relationship("Payment", back_populates="history")

    def __repr__(self) -> str:
        return f"<PaymentHistoryEntry {self.payment_id}#{self.sequence}: {self.change_type}>"
