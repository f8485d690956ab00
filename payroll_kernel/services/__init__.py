"""Kernel services - imperative shell around the pure domain layer."""

from payroll_kernel.services.assignment_lock_service import AssignmentLockService
from payroll_kernel.services.audit_log_service import AuditLogService
from payroll_kernel.services.history_ledger import HistoryLedger
from payroll_kernel.services.lookups import (
    ActorProvider,
    CriteriaLookup,
    SalaryLookup,
    SqlCriteriaLookup,
    SqlSalaryLookup,
    StaticActorProvider,
)
from payroll_kernel.services.payment_service import PaymentService
from payroll_kernel.services.salary_service import SalaryService
from payroll_kernel.services.snapshot_service import SnapshotService
from payroll_kernel.services.work_record_service import WorkRecordService

__all__ = [
    "ActorProvider",
    "AssignmentLockService",
    "AuditLogService",
    "CriteriaLookup",
    "HistoryLedger",
    "PaymentService",
    "SalaryLookup",
    "SalaryService",
    "SnapshotService",
    "SqlCriteriaLookup",
    "SqlSalaryLookup",
    "StaticActorProvider",
    "WorkRecordService",
]
