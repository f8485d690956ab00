"""
Value enums shared by the payroll domain, models and services.

Stored in the database as their lowercase string values (``String`` columns),
so ORM attributes may come back as plain ``str``; the ``str`` mixin keeps
comparisons against the enum members working either way.
"""

from enum import Enum


class RateBasis(str, Enum):
    """Period a salary amount is quoted for."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class EvaluationStatus(str, Enum):
    """Evaluation status of a work record: ASSIGNED -> COMPLETED."""

    ASSIGNED = "assigned"
    COMPLETED = "completed"


class CriteriaUnit(str, Enum):
    """Unit a completion criteria target is measured in."""

    KG = "kg"
    AREA = "area"
    PLANTS = "plants"
    LITERS = "liters"


class DocumentType(str, Enum):
    """Kind of supporting document attached to a payment."""

    CHALLAN = "challan"
    RECEIPT = "receipt"
    BANK_STATEMENT = "bank_statement"
    OTHER = "other"


class ChangeType(str, Enum):
    """Kind of change recorded in the payment history ledger."""

    CREATED = "created"
    REEVALUATED = "reevaluated"
    LINE_ITEM_ADDED = "line_item_added"
    LINE_ITEM_REMOVED = "line_item_removed"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"
    DOCUMENT_ADDED = "document_added"
    DOCUMENT_REMOVED = "document_removed"
    REMARKS_UPDATED = "remarks_updated"


class AuditOperation(str, Enum):
    """Operation category recorded in the operation audit log."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SUBMIT = "submit"
    APPROVE = "approve"
    PAY = "pay"
    CANCEL = "cancel"
    EVALUATE = "evaluate"


class AuditOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
