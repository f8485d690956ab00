"""ORM models for the payroll kernel."""

from payroll_kernel.models.audit_log import AuditLogEntry
from payroll_kernel.models.payment import Payment, PaymentDocument, PaymentLineItem
from payroll_kernel.models.payment_history import PaymentHistoryEntry
from payroll_kernel.models.salary import SalaryRecord
from payroll_kernel.models.work_record import WorkRecord
from payroll_kernel.models.worker import CompletionCriteria, WorkActivity, Worker


def import_all_models() -> list[type]:
    """Return every mapped model so Base.metadata knows all tables."""
    return [
        Worker,
        WorkActivity,
        CompletionCriteria,
        WorkRecord,
        SalaryRecord,
        Payment,
        PaymentLineItem,
        PaymentDocument,
        PaymentHistoryEntry,
        AuditLogEntry,
    ]


__all__ = [
    "AuditLogEntry",
    "CompletionCriteria",
    "Payment",
    "PaymentDocument",
    "PaymentHistoryEntry",
    "PaymentLineItem",
    "SalaryRecord",
    "WorkActivity",
    "WorkRecord",
    "Worker",
    "import_all_models",
]
