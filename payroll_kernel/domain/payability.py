"""
Payability -- pure transitions of the assignment lock protocol.

Responsibility:
    Describes whether a work record can still be paid, and by which payment
    it is held.  The persisted fact is ``WorkRecord.held_by_payment_id``
    plus ``locked_at``; the variant is derived from those columns and the
    holding payment's status, never stored separately.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The
    AssignmentLockService applies these transitions to the database with
    compare-and-swap UPDATE statements.

Invariants enforced:
    - A record is held by at most one payment.
    - UNPAID -> DRAFT_HELD(p) -> LOCKED(p); LOCKED -> APPROVED -> PAID is
      advisory and follows the payment status.
    - DRAFT_HELD, LOCKED and APPROVED may be released back to UNPAID.
    - PAID is terminal for the record.

Failure modes:
    - RecordAlreadyHeldError when including a record that is held.
    - PaidRecordUnlockError when releasing a record that has been paid.
    - RecordLockedError when a locked/approved/paid record would be edited.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from payroll_kernel.domain.payment_workflow import PaymentStatus
from payroll_kernel.exceptions import (
    InvalidTransitionError,
    PaidRecordUnlockError,
    RecordAlreadyHeldError,
    RecordLockedError,
)


class PayabilityState(str, Enum):
    UNPAID = "unpaid"
    DRAFT_HELD = "draft_held"
    LOCKED = "locked"
    APPROVED = "approved"
    PAID = "paid"


_FROZEN_STATES = frozenset(
    {PayabilityState.LOCKED, PayabilityState.APPROVED, PayabilityState.PAID}
)


@dataclass(frozen=True)
class Payability:
    """Payability of one work record.

    Guarantees: ``payment_id`` is None exactly when ``state`` is UNPAID.
    """

    state: PayabilityState
    payment_id: UUID | None = None

    def __post_init__(self) -> None:
        if (self.state is PayabilityState.UNPAID) != (self.payment_id is None):
            raise ValueError(
                f"Payability {self.state.value} inconsistent with payment_id={self.payment_id}"
            )

    @property
    def is_held(self) -> bool:
        return self.state is not PayabilityState.UNPAID

    @property
    def is_frozen(self) -> bool:
        """True once the record is in the approval pipeline or paid."""
        return self.state in _FROZEN_STATES

    def held_by(self, payment_id: UUID) -> bool:
        return self.payment_id == payment_id

    def __str__(self) -> str:
        if self.payment_id is None:
            return self.state.value
        return f"{self.state.value}({self.payment_id})"


UNPAID = Payability(PayabilityState.UNPAID)


def derive_payability(
    held_by_payment_id: UUID | None,
    locked_at: datetime | None,
    payment_status: PaymentStatus | str | None,
) -> Payability:
    """Derive the payability variant from the persisted hold columns."""
    if held_by_payment_id is None:
        return UNPAID

    if payment_status is None:
        state = PayabilityState.LOCKED if locked_at else PayabilityState.DRAFT_HELD
        return Payability(state, held_by_payment_id)

    status = PaymentStatus(payment_status)
    if status is PaymentStatus.CANCELLED:
        return UNPAID
    if status is PaymentStatus.DRAFT:
        return Payability(PayabilityState.DRAFT_HELD, held_by_payment_id)
    if status is PaymentStatus.PENDING_APPROVAL:
        return Payability(PayabilityState.LOCKED, held_by_payment_id)
    if status is PaymentStatus.APPROVED:
        return Payability(PayabilityState.APPROVED, held_by_payment_id)
    return Payability(PayabilityState.PAID, held_by_payment_id)


def include(
    current: Payability, payment_id: UUID, record_id: UUID | None = None
) -> Payability:
    """UNPAID -> DRAFT_HELD(payment_id)."""
    if current.state is not PayabilityState.UNPAID:
        raise RecordAlreadyHeldError(record_id, payment_id, current.payment_id)
    return Payability(PayabilityState.DRAFT_HELD, payment_id)


def lock(
    current: Payability, payment_id: UUID, record_id: UUID | None = None
) -> Payability:
    """DRAFT_HELD(p) -> LOCKED(p)."""
    if not current.held_by(payment_id):
        raise RecordAlreadyHeldError(record_id, payment_id, current.payment_id)
    if current.state is not PayabilityState.DRAFT_HELD:
        raise InvalidTransitionError(record_id or "<record>", current.state.value, "lock")
    return Payability(PayabilityState.LOCKED, payment_id)


def unlock(
    current: Payability, payment_id: UUID, record_id: UUID | None = None
) -> Payability:
    """DRAFT_HELD/LOCKED/APPROVED(p) -> UNPAID.  Releasing UNPAID is a no-op."""
    if current.state is PayabilityState.UNPAID:
        return UNPAID
    if not current.held_by(payment_id):
        raise RecordAlreadyHeldError(record_id, payment_id, current.payment_id)
    if current.state is PayabilityState.PAID:
        raise PaidRecordUnlockError(record_id or "<record>", payment_id)
    return UNPAID


def ensure_editable(current: Payability, record_id: UUID, action: str = "evaluate") -> None:
    """Refuse edits to a record that is locked, approved or paid."""
    if current.is_frozen:
        raise RecordLockedError(record_id, current.state.value, action)
