"""
Typed Exception Hierarchy for the Payroll Kernel.

Every error has a typed class (catch by type, not by message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
carrying the identifiers involved.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollKernelError (base)
    |
    +-- NotFoundError
    |   +-- PaymentNotFoundError
    |   +-- WorkRecordNotFoundError
    |   +-- LineItemNotFoundError
    |   +-- WorkerNotFoundError
    |   +-- ActivityNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- SalaryNotFoundError
    |   +-- NoActiveSalaryError
    |   +-- CriteriaNotFoundError
    |
    +-- InvalidTransitionError
    |   +-- NotDraftError
    |   +-- NotPendingApprovalError
    |   +-- NotApprovedError
    |   +-- AlreadyPaidError
    |   +-- AlreadyCancelledError
    |   +-- PaidRecordUnlockError
    |   +-- RecordLockedError
    |
    +-- PreconditionFailedError
    |   +-- NoLineItemsError
    |   +-- MissingReferenceError
    |   +-- MissingReasonError
    |   +-- RecordNotEvaluatedError
    |   +-- InvalidPeriodError
    |   +-- InvalidCompletionPercentageError
    |   +-- InvalidDocumentError
    |   +-- InvalidSalaryChangeError
    |
    +-- ConflictError
    |   +-- PeriodAlreadyHasDraftError
    |   +-- RecordAlreadyHeldError
    |   +-- ActiveSalaryExistsError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
HANDLING PATTERNS
===============================================================================

Errors are never retried by the kernel.  PaymentService rolls the
transaction back and re-raises the exception unchanged:

    try:
        payments.cancel(payment_id, reason="duplicate")
    except AlreadyPaidError as e:
        api_response(code=e.code, payment_id=str(e.payment_id))
"""

from datetime import date
from decimal import Decimal
from uuid import UUID


class PayrollKernelError(Exception):
    """Base exception for all payroll kernel errors."""

    code: str = "PAYROLL_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(PayrollKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class PaymentNotFoundError(NotFoundError):
    """Payment does not exist."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class WorkRecordNotFoundError(NotFoundError):
    """Work record does not exist (or was soft-deleted)."""

    code: str = "WORK_RECORD_NOT_FOUND"

    def __init__(self, record_id: UUID | str):
        self.record_id = record_id
        super().__init__(f"Work record not found: {record_id}")


class LineItemNotFoundError(NotFoundError):
    """Line item does not belong to the payment."""

    code: str = "LINE_ITEM_NOT_FOUND"

    def __init__(self, payment_id: UUID | str, line_item_id: UUID | str):
        self.payment_id = payment_id
        self.line_item_id = line_item_id
        super().__init__(
            f"Line item {line_item_id} not found on payment {payment_id}"
        )


class WorkerNotFoundError(NotFoundError):
    """Worker does not exist."""

    code: str = "WORKER_NOT_FOUND"

    def __init__(self, worker_id: UUID | str):
        self.worker_id = worker_id
        super().__init__(f"Worker not found: {worker_id}")


class ActivityNotFoundError(NotFoundError):
    """Work activity does not exist."""

    code: str = "ACTIVITY_NOT_FOUND"

    def __init__(self, activity_id: UUID | str):
        self.activity_id = activity_id
        super().__init__(f"Work activity not found: {activity_id}")


class DocumentNotFoundError(NotFoundError):
    """Document does not belong to the payment."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, payment_id: UUID | str, document_id: UUID | str):
        self.payment_id = payment_id
        self.document_id = document_id
        super().__init__(
            f"Document {document_id} not found on payment {payment_id}"
        )


class SalaryNotFoundError(NotFoundError):
    """Salary record does not exist."""

    code: str = "SALARY_NOT_FOUND"

    def __init__(self, salary_id: UUID | str):
        self.salary_id = salary_id
        super().__init__(f"Salary record not found: {salary_id}")


class NoActiveSalaryError(NotFoundError):
    """Worker has no salary record in force on the given date."""

    code: str = "NO_ACTIVE_SALARY"

    def __init__(self, worker_id: UUID | str, as_of: date | None = None):
        self.worker_id = worker_id
        self.as_of = as_of
        suffix = f" on {as_of}" if as_of else ""
        super().__init__(f"No active salary for worker {worker_id}{suffix}")


class CriteriaNotFoundError(NotFoundError):
    """Activity has no completion criteria in force on the given date."""

    code: str = "CRITERIA_NOT_FOUND"

    def __init__(self, activity_id: UUID | str, as_of: date | None = None):
        self.activity_id = activity_id
        self.as_of = as_of
        suffix = f" on {as_of}" if as_of else ""
        super().__init__(
            f"No active completion criteria for activity {activity_id}{suffix}"
        )


# Transition exceptions


class InvalidTransitionError(PayrollKernelError):
    """Operation not permitted from the entity's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_id: UUID | str,
        current_status: str,
        action: str,
        message: str | None = None,
    ):
        self.entity_id = entity_id
        self.current_status = str(current_status)
        self.action = action
        super().__init__(
            message
            or f"Cannot {action} {entity_id}: current status is {self.current_status}"
        )


class NotDraftError(InvalidTransitionError):
    """Payment must be DRAFT for this operation."""

    code: str = "NOT_DRAFT"

    def __init__(self, payment_id: UUID | str, current_status: str, action: str):
        self.payment_id = payment_id
        super().__init__(
            payment_id,
            current_status,
            action,
            f"Payment {payment_id} must be in DRAFT status to {action} "
            f"(current: {current_status})",
        )


class NotPendingApprovalError(InvalidTransitionError):
    """Payment must be PENDING_APPROVAL to be approved."""

    code: str = "NOT_PENDING_APPROVAL"

    def __init__(self, payment_id: UUID | str, current_status: str):
        self.payment_id = payment_id
        super().__init__(
            payment_id,
            current_status,
            "approve",
            f"Payment {payment_id} must be in PENDING_APPROVAL status to approve "
            f"(current: {current_status})",
        )


class NotApprovedError(InvalidTransitionError):
    """Payment must be APPROVED before it can be recorded as paid."""

    code: str = "NOT_APPROVED"

    def __init__(self, payment_id: UUID | str, current_status: str):
        self.payment_id = payment_id
        super().__init__(
            payment_id,
            current_status,
            "record_payment",
            f"Payment {payment_id} must be in APPROVED status to record payment "
            f"(current: {current_status})",
        )


class AlreadyPaidError(InvalidTransitionError):
    """Paid payments are terminal and cannot be cancelled."""

    code: str = "ALREADY_PAID"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(
            payment_id,
            "paid",
            "cancel",
            f"Payment {payment_id} has already been paid and cannot be cancelled",
        )


class AlreadyCancelledError(InvalidTransitionError):
    """Payment is already cancelled."""

    code: str = "ALREADY_CANCELLED"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(
            payment_id,
            "cancelled",
            "cancel",
            f"Payment {payment_id} is already cancelled",
        )


class PaidRecordUnlockError(InvalidTransitionError):
    """A work record paid out by a payment can never be released."""

    code: str = "PAID_RECORD_UNLOCK"

    def __init__(self, record_id: UUID | str, payment_id: UUID | str):
        self.record_id = record_id
        self.payment_id = payment_id
        super().__init__(
            record_id,
            "paid",
            "unlock",
            f"Work record {record_id} was paid by payment {payment_id} "
            "and cannot be unlocked",
        )


class RecordLockedError(InvalidTransitionError):
    """Work record is locked by a payment in the approval pipeline."""

    code: str = "RECORD_LOCKED"

    def __init__(self, record_id: UUID | str, payability: str, action: str = "evaluate"):
        self.record_id = record_id
        self.payability = payability
        super().__init__(
            record_id,
            payability,
            action,
            f"Work record {record_id} is {payability} and cannot be changed ({action})",
        )


# Precondition exceptions


class PreconditionFailedError(PayrollKernelError):
    """Base exception for requests that fail a business precondition."""

    code: str = "PRECONDITION_FAILED"


class NoLineItemsError(PreconditionFailedError):
    """Payment has no line items to submit."""

    code: str = "NO_LINE_ITEMS"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(f"Cannot submit payment {payment_id} with no line items")


class MissingReferenceError(PreconditionFailedError):
    """Recording a payment requires a reference number."""

    code: str = "MISSING_REFERENCE"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(
            f"Reference number is required to record payment {payment_id}"
        )


class MissingReasonError(PreconditionFailedError):
    """Cancelling a payment requires a reason."""

    code: str = "MISSING_REASON"

    def __init__(self, payment_id: UUID | str):
        self.payment_id = payment_id
        super().__init__(
            f"Cancellation reason is required to cancel payment {payment_id}"
        )


class RecordNotEvaluatedError(PreconditionFailedError):
    """Only evaluated (completed, not deleted) work records can be paid."""

    code: str = "RECORD_NOT_EVALUATED"

    def __init__(self, record_id: UUID | str, status: str | None = None):
        self.record_id = record_id
        self.status = status
        super().__init__(
            f"Work record {record_id} has not been evaluated (status: {status})"
        )


class InvalidPeriodError(PreconditionFailedError):
    """Payment period month/year is out of range."""

    code: str = "INVALID_PERIOD"

    def __init__(self, month: int, year: int, reason: str):
        self.month = month
        self.year = year
        self.reason = reason
        super().__init__(f"Invalid payment period {month}/{year}: {reason}")


class InvalidCompletionPercentageError(PreconditionFailedError):
    """Completion percentage is outside 0..100."""

    code: str = "INVALID_COMPLETION_PERCENTAGE"

    def __init__(self, value: Decimal | str):
        self.value = value
        super().__init__(
            f"Completion percentage must be between 0 and 100, got {value}"
        )


class InvalidDocumentError(PreconditionFailedError):
    """Attached document is empty or too large."""

    code: str = "INVALID_DOCUMENT"

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Invalid document {file_name!r}: {reason}")


class InvalidSalaryChangeError(PreconditionFailedError):
    """Salary change request is inconsistent with the worker's salary history."""

    code: str = "INVALID_SALARY_CHANGE"

    def __init__(self, worker_id: UUID | str, reason: str):
        self.worker_id = worker_id
        self.reason = reason
        super().__init__(f"Invalid salary change for worker {worker_id}: {reason}")


# Conflict exceptions


class ConflictError(PayrollKernelError):
    """Base exception for state conflicts between concurrent or prior requests."""

    code: str = "CONFLICT"


class PeriodAlreadyHasDraftError(ConflictError):
    """Only one DRAFT payment may exist per (month, year)."""

    code: str = "PERIOD_ALREADY_HAS_DRAFT"

    def __init__(
        self,
        month: int,
        year: int,
        existing_payment_id: UUID | str | None = None,
    ):
        self.month = month
        self.year = year
        self.existing_payment_id = existing_payment_id
        super().__init__(
            f"A draft payment already exists for this period ({month}/{year}). "
            "Please use the existing draft or cancel it first."
        )


class RecordAlreadyHeldError(ConflictError):
    """Work record is already included in another active payment."""

    code: str = "RECORD_ALREADY_HELD"

    def __init__(
        self,
        record_id: UUID | str,
        payment_id: UUID | str | None = None,
        held_by_payment_id: UUID | str | None = None,
    ):
        self.record_id = record_id
        self.payment_id = payment_id
        self.held_by_payment_id = held_by_payment_id
        holder = f" by payment {held_by_payment_id}" if held_by_payment_id else ""
        super().__init__(f"Work record {record_id} is already held{holder}")


class ActiveSalaryExistsError(ConflictError):
    """Worker already has an open-ended salary record."""

    code: str = "ACTIVE_SALARY_EXISTS"

    def __init__(self, worker_id: UUID | str):
        self.worker_id = worker_id
        super().__init__(
            f"Worker {worker_id} already has an active salary; use update_salary"
        )


# Immutability exceptions


class ImmutabilityError(PayrollKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    PaymentHistoryEntry rows, captured line item snapshots and
    PAID/CANCELLED payments are immutable.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
