"""
DTOs -- frozen data transfer objects returned by services and selectors.

Responsibility:
    Defines the immutable read models that leave the kernel: payments with
    their line items and documents, history entries, salary records, work
    records and audit log entries.

Architecture position:
    Kernel > Domain -- free of database access.  ``from_model()`` class
    methods are boundary converters invoked only from services/selectors.

Invariants enforced:
    - Services and selectors never hand ORM entities to callers.
    - Money fields stay Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from payroll_kernel.domain.payability import Payability
from payroll_kernel.domain.payment_workflow import PaymentStatus
from payroll_kernel.domain.values import (
    AuditOperation,
    AuditOutcome,
    ChangeType,
    DocumentType,
    EvaluationStatus,
    RateBasis,
)

if TYPE_CHECKING:
    from payroll_kernel.models.audit_log import AuditLogEntry as AuditLogEntryModel
    from payroll_kernel.models.payment import (
        Payment as PaymentModel,
        PaymentDocument as PaymentDocumentModel,
        PaymentLineItem as PaymentLineItemModel,
    )
    from payroll_kernel.models.payment_history import (
        PaymentHistoryEntry as PaymentHistoryEntryModel,
    )
    from payroll_kernel.models.salary import SalaryRecord as SalaryRecordModel
    from payroll_kernel.models.work_record import WorkRecord as WorkRecordModel


def _opt_status(value: str | None) -> PaymentStatus | None:
    return PaymentStatus(value) if value is not None else None


@dataclass(frozen=True)
class LineItemInfo:
    id: UUID
    payment_id: UUID
    work_record_id: UUID
    worker_id: UUID
    activity_id: UUID | None
    salary_record_id: UUID | None
    position: int
    assignment_date: date
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    employee_pf: Decimal
    voluntary_pf: Decimal
    employer_pf: Decimal
    pf_total: Decimal
    other_deductions: Decimal
    net_amount: Decimal
    remarks: str | None
    snapshot_worker_name: str | None
    snapshot_salary_amount: Decimal | None
    snapshot_salary_rate_basis: str | None
    snapshot_voluntary_pf_percent: Decimal | None
    snapshot_activity_name: str | None
    snapshot_criteria_unit: str | None
    snapshot_criteria_value: Decimal | None
    snapshot_completion_percentage: Decimal | None
    snapshot_captured_at: datetime | None

    @property
    def is_snapshot_captured(self) -> bool:
        return self.snapshot_captured_at is not None

    @classmethod
    def from_model(cls, model: PaymentLineItemModel) -> LineItemInfo:
        return cls(
            id=model.id,
            payment_id=model.payment_id,
            work_record_id=model.work_record_id,
            worker_id=model.worker_id,
            activity_id=model.activity_id,
            salary_record_id=model.salary_record_id,
            position=model.position,
            assignment_date=model.assignment_date,
            quantity=model.quantity,
            rate=model.rate,
            amount=model.amount,
            employee_pf=model.employee_pf,
            voluntary_pf=model.voluntary_pf,
            employer_pf=model.employer_pf,
            pf_total=model.pf_total,
            other_deductions=model.other_deductions,
            net_amount=model.net_amount,
            remarks=model.remarks,
            snapshot_worker_name=model.snapshot_worker_name,
            snapshot_salary_amount=model.snapshot_salary_amount,
            snapshot_salary_rate_basis=model.snapshot_salary_rate_basis,
            snapshot_voluntary_pf_percent=model.snapshot_voluntary_pf_percent,
            snapshot_activity_name=model.snapshot_activity_name,
            snapshot_criteria_unit=model.snapshot_criteria_unit,
            snapshot_criteria_value=model.snapshot_criteria_value,
            snapshot_completion_percentage=model.snapshot_completion_percentage,
            snapshot_captured_at=model.snapshot_captured_at,
        )


@dataclass(frozen=True)
class DocumentInfo:
    """Document metadata; the bytes are fetched separately."""

    id: UUID
    payment_id: UUID
    file_name: str
    content_type: str | None
    file_size: int
    document_type: DocumentType
    description: str | None
    uploaded_by: str
    uploaded_at: datetime

    @classmethod
    def from_model(cls, model: PaymentDocumentModel) -> DocumentInfo:
        return cls(
            id=model.id,
            payment_id=model.payment_id,
            file_name=model.file_name,
            content_type=model.content_type,
            file_size=model.file_size,
            document_type=DocumentType(model.document_type),
            description=model.description,
            uploaded_by=model.uploaded_by,
            uploaded_at=model.uploaded_at,
        )


@dataclass(frozen=True)
class PaymentInfo:
    """A payment with its line items and document metadata."""

    id: UUID
    status: PaymentStatus
    month: int
    year: int
    title: str | None
    total_amount: Decimal
    payment_date: date | None
    reference_number: str | None
    remarks: str | None
    cancellation_reason: str | None
    created_by: str
    created_at: datetime | None
    submitted_by: str | None
    submitted_at: datetime | None
    approved_by: str | None
    approved_at: datetime | None
    paid_by: str | None
    paid_at: datetime | None
    cancelled_by: str | None
    cancelled_at: datetime | None
    line_items: tuple[LineItemInfo, ...] = ()
    documents: tuple[DocumentInfo, ...] = ()

    @property
    def line_item_count(self) -> int:
        return len(self.line_items)

    @property
    def net_total(self) -> Decimal:
        return sum((li.net_amount for li in self.line_items), Decimal("0"))

    @property
    def pf_total(self) -> Decimal:
        return sum((li.pf_total for li in self.line_items), Decimal("0"))

    @classmethod
    def from_model(cls, model: PaymentModel) -> PaymentInfo:
        return cls(
            id=model.id,
            status=PaymentStatus(model.status),
            month=model.month,
            year=model.year,
            title=model.title,
            total_amount=model.total_amount,
            payment_date=model.payment_date,
            reference_number=model.reference_number,
            remarks=model.remarks,
            cancellation_reason=model.cancellation_reason,
            created_by=model.created_by,
            created_at=model.created_at,
            submitted_by=model.submitted_by,
            submitted_at=model.submitted_at,
            approved_by=model.approved_by,
            approved_at=model.approved_at,
            paid_by=model.paid_by,
            paid_at=model.paid_at,
            cancelled_by=model.cancelled_by,
            cancelled_at=model.cancelled_at,
            line_items=tuple(LineItemInfo.from_model(li) for li in model.line_items),
            documents=tuple(DocumentInfo.from_model(d) for d in model.documents),
        )


@dataclass(frozen=True)
class HistoryEntryInfo:
    id: UUID
    payment_id: UUID
    sequence: int
    change_type: ChangeType
    description: str | None
    previous_status: PaymentStatus | None
    new_status: PaymentStatus | None
    previous_amount: Decimal | None
    new_amount: Decimal | None
    actor: str
    origin: str | None
    changed_at: datetime
    remarks: str | None

    @classmethod
    def from_model(cls, model: PaymentHistoryEntryModel) -> HistoryEntryInfo:
        return cls(
            id=model.id,
            payment_id=model.payment_id,
            sequence=model.sequence,
            change_type=ChangeType(model.change_type),
            description=model.description,
            previous_status=_opt_status(model.previous_status),
            new_status=_opt_status(model.new_status),
            previous_amount=model.previous_amount,
            new_amount=model.new_amount,
            actor=model.actor,
            origin=model.origin,
            changed_at=model.changed_at,
            remarks=model.remarks,
        )


@dataclass(frozen=True)
class SalaryInfo:
    id: UUID
    worker_id: UUID
    amount: Decimal
    rate_basis: RateBasis
    voluntary_pf_percent: Decimal
    currency: str
    start_date: date
    end_date: date | None
    is_active: bool
    reason_for_change: str | None
    notes: str | None

    def in_force_on(self, as_of: date) -> bool:
        if as_of < self.start_date:
            return False
        return self.end_date is None or as_of <= self.end_date

    @classmethod
    def from_model(cls, model: SalaryRecordModel) -> SalaryInfo:
        return cls(
            id=model.id,
            worker_id=model.worker_id,
            amount=model.amount,
            rate_basis=RateBasis(model.rate_basis),
            voluntary_pf_percent=model.voluntary_pf_percent,
            currency=model.currency,
            start_date=model.start_date,
            end_date=model.end_date,
            is_active=model.is_active,
            reason_for_change=model.reason_for_change,
            notes=model.notes,
        )


@dataclass(frozen=True)
class WorkRecordInfo:
    id: UUID
    worker_id: UUID
    activity_id: UUID
    assignment_date: date
    activity_name: str | None
    evaluation_status: EvaluationStatus
    completion_percentage: Decimal | None
    actual_value: Decimal | None
    actual_duration_hours: Decimal | None
    completion_notes: str | None
    completed_date: date | None
    evaluation_count: int
    first_evaluated_at: datetime | None
    last_evaluated_at: datetime | None
    payability: Payability
    is_deleted: bool

    @classmethod
    def from_model(
        cls, model: WorkRecordModel, payability: Payability
    ) -> WorkRecordInfo:
        return cls(
            id=model.id,
            worker_id=model.worker_id,
            activity_id=model.activity_id,
            assignment_date=model.assignment_date,
            activity_name=model.activity_name,
            evaluation_status=EvaluationStatus(model.evaluation_status),
            completion_percentage=model.completion_percentage,
            actual_value=model.actual_value,
            actual_duration_hours=model.actual_duration_hours,
            completion_notes=model.completion_notes,
            completed_date=model.completed_date,
            evaluation_count=model.evaluation_count,
            first_evaluated_at=model.first_evaluated_at,
            last_evaluated_at=model.last_evaluated_at,
            payability=payability,
            is_deleted=model.is_deleted,
        )


@dataclass(frozen=True)
class AuditLogInfo:
    id: UUID
    operation: AuditOperation
    method_name: str
    entity_type: str
    entity_id: str | None
    outcome: AuditOutcome
    error_code: str | None
    error_message: str | None
    actor: str
    origin: str | None
    user_agent: str | None
    correlation_id: str | None
    occurred_at: datetime

    @classmethod
    def from_model(cls, model: AuditLogEntryModel) -> AuditLogInfo:
        return cls(
            id=model.id,
            operation=AuditOperation(model.operation),
            method_name=model.method_name,
            entity_type=model.entity_type,
            entity_id=model.entity_id,
            outcome=AuditOutcome(model.outcome),
            error_code=model.error_code,
            error_message=model.error_message,
            actor=model.actor,
            origin=model.origin,
            user_agent=model.user_agent,
            correlation_id=model.correlation_id,
            occurred_at=model.occurred_at,
        )
