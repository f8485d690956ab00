"""
Payment lifecycle state machine.

Responsibility:
    Declares the closed set of payment statuses and the transitions between
    them, and resolves an (current status, action) pair to the target status
    or to the specific ``InvalidTransitionError`` subclass that explains why
    the action is refused.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  PaymentService calls
    ``resolve_transition`` before applying any status change and applies
    the returned transition's effect on work records (lock or release).

Invariants enforced:
    - DRAFT -> PENDING_APPROVAL -> APPROVED -> PAID; DRAFT, PENDING_APPROVAL
      and APPROVED may be CANCELLED.
    - PAID and CANCELLED are terminal: no action leaves them.
    - Draft-only structural operations (add/remove line items, documents,
      re-evaluation, delete) are gated by ``require_draft``.

Failure modes:
    - NotDraftError, NotPendingApprovalError, NotApprovedError,
      AlreadyPaidError, AlreadyCancelledError for refused transitions.
    - InvalidTransitionError for an action the workflow does not declare.
    - NoLineItemsError, MissingReferenceError, MissingReasonError when a
      transition's guard does not hold.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.exceptions import (
    AlreadyCancelledError,
    AlreadyPaidError,
    InvalidTransitionError,
    MissingReasonError,
    MissingReferenceError,
    NoLineItemsError,
    NotApprovedError,
    NotDraftError,
    NotPendingApprovalError,
)


class PaymentStatus(str, Enum):
    """Lifecycle status of a payment.

    Contract: Transitions are DRAFT -> PENDING_APPROVAL -> APPROVED -> PAID,
    with CANCELLED reachable from every non-terminal state.
    """

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    RECORD_PAYMENT = "record_payment"
    CANCEL = "cancel"


TERMINAL_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.PAID, PaymentStatus.CANCELLED}
)

@dataclass(frozen=True)
class TransitionFacts:
    """What the payment guards inspect, gathered by PaymentService per request."""

    line_item_count: int = 0
    reference_number: str | None = None
    reason: str | None = None


def _not_blank(value: str | None) -> bool:
    return bool(value and value.strip())


_HAS_LINE_ITEMS = Guard(
    name="has_line_items",
    description="A payment can only be submitted with at least one line item",
    predicate=lambda facts: facts.line_item_count > 0,
    refusal=NoLineItemsError,
)
_HAS_REFERENCE = Guard(
    name="has_reference_number",
    description="Recording a payment requires a non-blank reference number",
    predicate=lambda facts: _not_blank(facts.reference_number),
    refusal=MissingReferenceError,
)
_HAS_REASON = Guard(
    name="has_cancellation_reason",
    description="Cancelling a payment requires a non-blank reason",
    predicate=lambda facts: _not_blank(facts.reason),
    refusal=MissingReasonError,
)

PAYMENT_WORKFLOW = Workflow(
    name="payment",
    description="Wage payment approval and disbursement lifecycle",
    initial_state=PaymentStatus.DRAFT.value,
    states=tuple(s.value for s in PaymentStatus),
    transitions=(
        Transition(
            from_state=PaymentStatus.DRAFT.value,
            to_state=PaymentStatus.PENDING_APPROVAL.value,
            action=PaymentAction.SUBMIT.value,
            guard=_HAS_LINE_ITEMS,
            locks_records=True,
        ),
        Transition(
            from_state=PaymentStatus.PENDING_APPROVAL.value,
            to_state=PaymentStatus.APPROVED.value,
            action=PaymentAction.APPROVE.value,
        ),
        Transition(
            from_state=PaymentStatus.APPROVED.value,
            to_state=PaymentStatus.PAID.value,
            action=PaymentAction.RECORD_PAYMENT.value,
            guard=_HAS_REFERENCE,
        ),
        Transition(
            from_state=PaymentStatus.DRAFT.value,
            to_state=PaymentStatus.CANCELLED.value,
            action=PaymentAction.CANCEL.value,
            guard=_HAS_REASON,
            releases_records=True,
        ),
        Transition(
            from_state=PaymentStatus.PENDING_APPROVAL.value,
            to_state=PaymentStatus.CANCELLED.value,
            action=PaymentAction.CANCEL.value,
            guard=_HAS_REASON,
            releases_records=True,
        ),
        Transition(
            from_state=PaymentStatus.APPROVED.value,
            to_state=PaymentStatus.CANCELLED.value,
            action=PaymentAction.CANCEL.value,
            guard=_HAS_REASON,
            releases_records=True,
        ),
    ),
    terminal_states=(PaymentStatus.PAID.value, PaymentStatus.CANCELLED.value),
)


def _refusal(
    payment_id: UUID | str, current: PaymentStatus, action: PaymentAction
) -> InvalidTransitionError:
    if action is PaymentAction.SUBMIT:
        return NotDraftError(payment_id, current.value, "submit")
    if action is PaymentAction.APPROVE:
        return NotPendingApprovalError(payment_id, current.value)
    if action is PaymentAction.RECORD_PAYMENT:
        return NotApprovedError(payment_id, current.value)
    if current is PaymentStatus.PAID:
        return AlreadyPaidError(payment_id)
    return AlreadyCancelledError(payment_id)


def _lookup(
    current: PaymentStatus | str,
    action: PaymentAction | str,
    payment_id: UUID | str,
) -> Transition:
    current = PaymentStatus(current)
    try:
        action = PaymentAction(action)
    except ValueError:
        raise InvalidTransitionError(payment_id, current.value, str(action)) from None

    transition = PAYMENT_WORKFLOW.transition_for(current.value, action.value)
    if transition is None:
        raise _refusal(payment_id, current, action)
    return transition


def resolve_transition(
    current: PaymentStatus | str,
    action: PaymentAction | str,
    payment_id: UUID | str,
    facts: TransitionFacts,
) -> Transition:
    """Resolve the transition ``action`` fires from ``current`` and check its guard.

    The status check comes first, so a submit of a paid payment reports
    NotDraftError even when it also has no line items.  The returned
    Transition tells the caller whether to lock or release work records.
    """
    transition = _lookup(current, action, payment_id)
    if transition.guard is not None:
        transition.guard.check(facts, payment_id)
    return transition


def next_status(
    current: PaymentStatus | str,
    action: PaymentAction | str,
    payment_id: UUID | str = "<unsaved>",
) -> PaymentStatus:
    """Resolve the status ``action`` leads to from ``current``, guards aside.

    Raises the specific InvalidTransitionError subclass when refused.
    """
    return PaymentStatus(_lookup(current, action, payment_id).to_state)


def require_draft(
    current: PaymentStatus | str, payment_id: UUID | str, action: str
) -> None:
    """Raise NotDraftError unless the payment is still a draft."""
    if PaymentStatus(current) is not PaymentStatus.DRAFT:
        raise NotDraftError(payment_id, PaymentStatus(current).value, action)


def is_terminal(status: PaymentStatus | str) -> bool:
    return PaymentStatus(status) in TERMINAL_STATUSES
