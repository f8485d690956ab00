"""
Module: payroll_kernel.selectors.payment_selector
Responsibility: Read access to payments, their history and documents, and
    the derived payability of work records.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Payment lists are ordered by status priority (DRAFT, PENDING_APPROVAL,
      APPROVED, PAID, CANCELLED) and then newest first.
    - History is returned newest first (highest sequence first).
    - Payability is always derived from the hold columns and the holding
      payment's status, never read from a stored status.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import case, select

from payroll_kernel.domain.dtos import DocumentInfo, HistoryEntryInfo, PaymentInfo
from payroll_kernel.domain.payability import Payability, derive_payability
from payroll_kernel.domain.payment_workflow import PaymentStatus
from payroll_kernel.exceptions import WorkRecordNotFoundError
from payroll_kernel.models.payment import Payment, PaymentDocument
from payroll_kernel.models.payment_history import PaymentHistoryEntry
from payroll_kernel.models.work_record import WorkRecord
from payroll_kernel.selectors.base import BaseSelector

STATUS_PRIORITY: tuple[PaymentStatus, ...] = (
    PaymentStatus.DRAFT,
    PaymentStatus.PENDING_APPROVAL,
    PaymentStatus.APPROVED,
    PaymentStatus.PAID,
    PaymentStatus.CANCELLED,
)

_status_order = case(
    {status.value: rank for rank, status in enumerate(STATUS_PRIORITY)},
    value=Payment.status,
    else_=len(STATUS_PRIORITY),
)


class PaymentSelector(BaseSelector[Payment]):
    """Read-only queries over the payment aggregate."""

    def get_payment(self, payment_id: UUID) -> PaymentInfo | None:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            return None
        return PaymentInfo.from_model(payment)

    def list_payments(self, limit: int | None = None) -> list[PaymentInfo]:
        stmt = select(Payment).order_by(_status_order, Payment.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [PaymentInfo.from_model(p) for p in self.session.scalars(stmt)]

    def list_by_status(self, status: PaymentStatus | str) -> list[PaymentInfo]:
        stmt = (
            select(Payment)
            .where(Payment.status == PaymentStatus(status).value)
            .order_by(Payment.created_at.desc())
        )
        return [PaymentInfo.from_model(p) for p in self.session.scalars(stmt)]

    def find_draft(self, month: int, year: int) -> PaymentInfo | None:
        stmt = select(Payment).where(
            Payment.month == month,
            Payment.year == year,
            Payment.status == PaymentStatus.DRAFT.value,
        )
        payment = self.session.execute(stmt).scalar_one_or_none()
        return PaymentInfo.from_model(payment) if payment is not None else None

    def get_history(self, payment_id: UUID) -> list[HistoryEntryInfo]:
        """History entries of a payment, newest first."""
        stmt = (
            select(PaymentHistoryEntry)
            .where(PaymentHistoryEntry.payment_id == payment_id)
            .order_by(PaymentHistoryEntry.sequence.desc())
        )
        return [HistoryEntryInfo.from_model(e) for e in self.session.scalars(stmt)]

    def get_document(
        self, payment_id: UUID, document_id: UUID
    ) -> tuple[DocumentInfo, bytes] | None:
        stmt = select(PaymentDocument).where(
            PaymentDocument.id == document_id,
            PaymentDocument.payment_id == payment_id,
        )
        document = self.session.execute(stmt).scalar_one_or_none()
        if document is None:
            return None
        return DocumentInfo.from_model(document), document.data

    def record_payability(self, record_id: UUID) -> Payability:
        """Derived payability of a work record."""
        stmt = (
            select(WorkRecord.held_by_payment_id, WorkRecord.locked_at, Payment.status)
            .outerjoin(Payment, Payment.id == WorkRecord.held_by_payment_id)
            .where(WorkRecord.id == record_id)
        )
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            raise WorkRecordNotFoundError(record_id)
        held_by, locked_at, status = row
        return derive_payability(held_by, locked_at, status)
