"""
HistoryLedger -- append-only change log of a payment.

Responsibility:
    Appends one ``PaymentHistoryEntry`` per state-changing payment operation,
    numbering entries with a per-payment sequence.

Architecture position:
    Kernel > Services -- called by PaymentService inside the same
    transaction as the change it records.

Invariants enforced:
    - Entries are only ever appended; UPDATE and DELETE are refused by the
      ORM listeners in db/immutability.py (DELETE is allowed only while a
      draft is purged).
    - Sequence numbers are contiguous per payment, starting at 1.
"""

from __future__ import annotations

from decimal import Decimal

from payroll_kernel.domain.audit_context import ActorIdentity
from payroll_kernel.domain.payment_workflow import PaymentStatus
from payroll_kernel.domain.values import ChangeType
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.payment import Payment
from payroll_kernel.models.payment_history import PaymentHistoryEntry
from payroll_kernel.services.base import BaseService

logger = get_logger("services.history")


def _status_value(status: PaymentStatus | str | None) -> str | None:
    return getattr(status, "value", status)


class HistoryLedger(BaseService[PaymentHistoryEntry]):
    def append(
        self,
        payment: Payment,
        change_type: ChangeType,
        actor: ActorIdentity,
        *,
        description: str | None = None,
        previous_status: PaymentStatus | str | None = None,
        new_status: PaymentStatus | str | None = None,
        previous_amount: Decimal | None = None,
        new_amount: Decimal | None = None,
        remarks: str | None = None,
    ) -> PaymentHistoryEntry:
        sequence = max((e.sequence for e in payment.history), default=0) + 1
        entry = PaymentHistoryEntry(
            sequence=sequence,
            change_type=change_type.value,
            description=description,
            previous_status=_status_value(previous_status),
            new_status=_status_value(new_status),
            previous_amount=previous_amount,
            new_amount=new_amount,
            actor=actor.actor_id,
            origin=actor.origin,
            changed_at=self.clock.now(),
            remarks=remarks,
        )
        payment.history.append(entry)
        self.session.flush()

        logger.debug(
            "payment_history_appended",
            extra={
                "payment_id": str(payment.id),
                "sequence": sequence,
                "change_type": change_type.value,
            },
        )
        return entry
