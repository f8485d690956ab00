"""Read-only query selectors."""

from payroll_kernel.selectors.audit_log_selector import AuditLogSelector
from payroll_kernel.selectors.base import BaseSelector
from payroll_kernel.selectors.payment_selector import STATUS_PRIORITY, PaymentSelector

__all__ = [
    "AuditLogSelector",
    "BaseSelector",
    "PaymentSelector",
    "STATUS_PRIORITY",
]
