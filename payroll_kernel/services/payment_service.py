"""
PaymentService -- the single entry point for payment lifecycle operations.

Responsibility:
    Orchestrates every operation on the payment aggregate: building a
    draft, attaching and removing work records, submitting, approving,
    recording the disbursement, cancelling, purging drafts, re-evaluating
    drafts, editing draft metadata and managing supporting documents.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    Delegates pure decisions to the domain layer (payment_workflow,
    payability, wage_calculator, snapshot) and persistence details to
    peer kernel services (AssignmentLockService, SnapshotService,
    HistoryLedger).

Operation flow (every public mutating method):
    1. Resolve the actor (ActorProvider) and capture the AuditContext
    2. Bind the AuditContext to the LogContext (every log line carries it)
    3. Load the payment row FOR UPDATE
    4. Validate the transition and its guard (resolve_transition /
       require_draft)
    5. Apply locks, snapshots and amounts
    6. Append the history entry
    7. Commit, or roll back and re-raise
    8. Record the operation in the audit log (SUCCESS or FAILURE)

Invariants enforced:
    - All-or-nothing: each public operation is one transaction.
    - Payment.total_amount == sum(line.amount) after every structural change.
    - At most one DRAFT per (month, year).
    - A work record is held by at most one non-cancelled payment.
    - Submit locks and snapshots every line item; cancel releases every
      record; PAID and CANCELLED are terminal.
    - Every mutating operation appends a history entry in the same
      transaction (delete_draft removes the history with the draft).

Failure modes:
    - PaymentNotFoundError, LineItemNotFoundError, DocumentNotFoundError.
    - NotDraftError, NotPendingApprovalError, NotApprovedError,
      AlreadyPaidError, AlreadyCancelledError.
    - NoLineItemsError, MissingReferenceError, MissingReasonError,
      InvalidPeriodError, InvalidDocumentError, RecordNotEvaluatedError.
    - PeriodAlreadyHasDraftError, RecordAlreadyHeldError,
      NoActiveSalaryError.
    Errors are never retried.

Audit relevance:
    Every invocation is logged with correlation_id, actor and timing, and
    produces one AuditLogEntry; every state change produces one
    PaymentHistoryEntry.
"""

from __future__ import annotations

import calendar
import time
from collections.abc import Callable, Iterable
from datetime import date, timedelta
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_config.schema import (
    DEFAULT_WAGE_CONFIG,
    SALARY_AS_OF_ASSIGNMENT_DATE,
    WageConfig,
)
from payroll_kernel.db.immutability import PURGE_SESSION_KEY
from payroll_kernel.domain.audit_context import ActorIdentity, AuditContext
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.dtos import (
    DocumentInfo,
    HistoryEntryInfo,
    LineItemInfo,
    PaymentInfo,
)
from payroll_kernel.domain.payment_workflow import (
    PaymentAction,
    PaymentStatus,
    TransitionFacts,
    resolve_transition,
    require_draft,
)
from payroll_kernel.domain.values import (
    AuditOperation,
    AuditOutcome,
    ChangeType,
    DocumentType,
)
from payroll_kernel.domain.wage_calculator import WageBreakdown, compute_line_item
from payroll_kernel.domain.workflow import Transition
from payroll_kernel.exceptions import (
    AlreadyCancelledError,
    AlreadyPaidError,
    DocumentNotFoundError,
    InvalidDocumentError,
    InvalidPeriodError,
    LineItemNotFoundError,
    NoActiveSalaryError,
    PaymentNotFoundError,
    PeriodAlreadyHasDraftError,
    RecordNotEvaluatedError,
    WorkRecordNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.payment import Payment, PaymentDocument, PaymentLineItem
from payroll_kernel.models.work_record import WorkRecord
from payroll_kernel.selectors.payment_selector import PaymentSelector
from payroll_kernel.services.assignment_lock_service import AssignmentLockService
from payroll_kernel.services.audit_log_service import AuditLogService
from payroll_kernel.services.history_ledger import HistoryLedger
from payroll_kernel.services.lookups import (
    ActorProvider,
    CriteriaLookup,
    SalaryLookup,
    SqlSalaryLookup,
)
from payroll_kernel.services.snapshot_service import SnapshotService

logger = get_logger("services.payment")

T = TypeVar("T")

MIN_PAYMENT_YEAR = 2000
_ZERO = Decimal("0")


def default_payment_title(month: int, year: int) -> str:
    """Title for the week ending on the last Sunday of the month.

    e.g. ``default_payment_title(1, 2024) == "Payments for Week ending 22-28 Jan 2024"``
    """
    last_day = date(year, month, calendar.monthrange(year, month)[1])
    # weekday(): Monday == 0 ... Sunday == 6
    last_sunday = last_day - timedelta(days=(last_day.weekday() + 1) % 7)
    week_start = last_sunday - timedelta(days=6)
    return (
        f"Payments for Week ending {week_start.day:02d}-{last_sunday.day:02d} "
        f"{calendar.month_abbr[last_sunday.month]} {last_sunday.year}"
    )


def _append_remarks(existing: str | None, remarks: str | None) -> str | None:
    if not remarks:
        return existing
    if not existing:
        return remarks
    return f"{existing}\n{remarks}"


def _apply_breakdown(line_item: PaymentLineItem, breakdown: WageBreakdown) -> None:
    line_item.quantity = breakdown.quantity
    line_item.rate = breakdown.rate
    line_item.amount = breakdown.amount
    line_item.employee_pf = breakdown.employee_pf
    line_item.voluntary_pf = breakdown.voluntary_pf
    line_item.employer_pf = breakdown.employer_pf
    line_item.pf_total = breakdown.pf_total
    line_item.other_deductions = breakdown.other_deductions
    line_item.net_amount = breakdown.net_amount


class PaymentService:
    """
    Orchestrates the payment lifecycle.

    Contract:
        Each public mutating method is one transaction.  With
        ``auto_commit=True`` (the default) the session is committed on
        success and rolled back on any exception; with ``auto_commit=False``
        the caller owns commit/rollback.

    Guarantees:
        - Returns frozen DTOs (PaymentInfo, LineItemInfo, DocumentInfo,
          HistoryEntryInfo), never ORM entities.
        - The AuditContext is captured before any work starts, so the audit
          writer never depends on request-scoped state.

    Non-goals:
        - Authentication and authorization; the ActorProvider is trusted.
    """

    def __init__(
        self,
        session: Session,
        actor_provider: ActorProvider,
        *,
        salary_lookup: SalaryLookup | None = None,
        criteria_lookup: CriteriaLookup | None = None,
        audit_log: AuditLogService | None = None,
        clock: Clock | None = None,
        config: WageConfig | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._actors = actor_provider
        self._clock = clock or SystemClock()
        self._config = config or DEFAULT_WAGE_CONFIG
        self._salaries = salary_lookup or SqlSalaryLookup(session)
        self._audit_log = audit_log
        self._auto_commit = auto_commit

        self._locks = AssignmentLockService(session, self._clock)
        self._snapshots = SnapshotService(
            session, self._clock, criteria_lookup=criteria_lookup, config=self._config
        )
        self._history = HistoryLedger(session, self._clock)
        self._selector = PaymentSelector(session)

    # =========================================================================
    # Transaction / audit envelope
    # =========================================================================

    def _execute(
        self,
        method_name: str,
        operation: AuditOperation,
        payment_id: UUID | None,
        work: Callable[[ActorIdentity], T],
    ) -> T:
        actor = self._actors.current_actor()
        correlation_id = str(uuid4())
        context = AuditContext.capture(
            actor,
            operation=operation,
            method_name=f"PaymentService.{method_name}",
            entity_type="Payment",
            entity_id=payment_id,
            captured_at=self._clock.now(),
            correlation_id=correlation_id,
        )

        with LogContext.bind_audit(context):
            logger.info("payment_operation_started", extra={"method": method_name})
            t0 = time.monotonic()

            try:
                result = work(actor)
                if self._auto_commit:
                    self._session.commit()
            except Exception as exc:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "payment_operation_failed",
                    extra={
                        "method": method_name,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                        "duration_ms": duration_ms,
                    },
                    exc_info=True,
                )
                self._record_audit(context, AuditOutcome.FAILURE, exc, duration_ms)
                raise

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                "payment_operation_completed",
                extra={"method": method_name, "duration_ms": duration_ms},
            )
            if context.entity_id is None and isinstance(result, PaymentInfo):
                context = context.with_entity_id(result.id)
            self._record_audit(context, AuditOutcome.SUCCESS, None, duration_ms)
            return result

    def _record_audit(
        self,
        context: AuditContext,
        outcome: AuditOutcome,
        error: BaseException | None,
        duration_ms: float,
    ) -> None:
        if self._audit_log is not None:
            self._audit_log.record(context, outcome, error, duration_ms)

    # =========================================================================
    # Loading helpers
    # =========================================================================

    def _get_payment_for_update(self, payment_id: UUID) -> Payment:
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        payment = self._session.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def _evaluated_record(self, record_id: UUID) -> WorkRecord:
        record = self._session.get(WorkRecord, record_id)
        if record is None or record.is_deleted:
            raise WorkRecordNotFoundError(record_id)
        if not record.is_evaluated:
            raise RecordNotEvaluatedError(
                record_id,
                getattr(record.evaluation_status, "value", record.evaluation_status),
            )
        return record

    def _salary_date(self, record: WorkRecord) -> date:
        if self._config.salary_as_of == SALARY_AS_OF_ASSIGNMENT_DATE:
            return record.assignment_date
        return self._clock.today()

    def _calculate(self, record: WorkRecord) -> tuple[WageBreakdown, UUID]:
        as_of = self._salary_date(record)
        salary = self._salaries.current_salary(record.worker_id, as_of)
        if salary is None:
            raise NoActiveSalaryError(record.worker_id, as_of)
        breakdown = compute_line_item(
            salary, record.completion_percentage, config=self._config
        )
        return breakdown, salary.id

    def _apply_record_effect(self, transition: Transition, payment: Payment) -> int:
        """Lock or release the payment's work records as the transition declares."""
        if transition.locks_records:
            return self._locks.lock_all(
                payment.id, [li.work_record_id for li in payment.line_items]
            )
        if transition.releases_records:
            return self._locks.release_all(payment.id)
        return 0

    def _recompute_line_items(self, payment: Payment, actor: ActorIdentity) -> None:
        """Reprice every line item from the live record and salary."""
        for line_item in payment.line_items:
            record = self._evaluated_record(line_item.work_record_id)
            breakdown, salary_id = self._calculate(record)
            _apply_breakdown(line_item, breakdown)
            line_item.salary_record_id = salary_id
            line_item.updated_by = actor.actor_id
        payment.recalculate_total()

    def _add_records(
        self, payment: Payment, record_ids: Iterable[UUID], actor: ActorIdentity
    ) -> list[PaymentLineItem]:
        added = []
        for record_id in record_ids:
            record = self._evaluated_record(record_id)
            breakdown, salary_id = self._calculate(record)
            self._locks.include(record_id, payment.id)

            line_item = PaymentLineItem(
                work_record_id=record.id,
                worker_id=record.worker_id,
                activity_id=record.activity_id,
                salary_record_id=salary_id,
                position=payment.next_position(),
                assignment_date=record.assignment_date,
                created_by=actor.actor_id,
            )
            _apply_breakdown(line_item, breakdown)
            payment.line_items.append(line_item)
            added.append(line_item)

        payment.recalculate_total()
        self._session.flush()
        return added

    # =========================================================================
    # Draft construction
    # =========================================================================

    def create_draft(
        self,
        month: int,
        year: int,
        record_ids: list[UUID] | None = None,
        remarks: str | None = None,
        title: str | None = None,
    ) -> PaymentInfo:
        """
        Create the DRAFT payment for a period.

        Raises:
            InvalidPeriodError: month outside 1..12 or year before 2000.
            PeriodAlreadyHasDraftError: a draft already exists for the period.
        """

        def work(actor: ActorIdentity) -> PaymentInfo:
            if not 1 <= month <= 12:
                raise InvalidPeriodError(month, year, "month must be between 1 and 12")
            if year < MIN_PAYMENT_YEAR:
                raise InvalidPeriodError(
                    month, year, f"year must be {MIN_PAYMENT_YEAR} or later"
                )

            existing = self._selector.find_draft(month, year)
            if existing is not None:
                raise PeriodAlreadyHasDraftError(month, year, existing.id)

            payment = Payment(
                status=PaymentStatus.DRAFT.value,
                month=month,
                year=year,
                title=title or default_payment_title(month, year),
                remarks=remarks,
                total_amount=_ZERO,
                created_by=actor.actor_id,
                created_at=self._clock.now(),
            )
            self._session.add(payment)
            try:
                self._session.flush()
            except IntegrityError:
                logger.warning(
                    "concurrent_draft_conflict",
                    extra={"month": month, "year": year},
                )
                raise PeriodAlreadyHasDraftError(month, year) from None

            self._history.append(
                payment,
                ChangeType.CREATED,
                actor,
                description=f"Draft payment created for {month:02d}/{year}",
                new_status=PaymentStatus.DRAFT,
                new_amount=_ZERO,
                remarks=remarks,
            )

            if record_ids:
                added = self._add_records(payment, record_ids, actor)
                self._history.append(
                    payment,
                    ChangeType.LINE_ITEM_ADDED,
                    actor,
                    description=f"Added {len(added)} work records",
                    previous_amount=_ZERO,
                    new_amount=payment.total_amount,
                )

            logger.info(
                "payment_draft_created",
                extra={
                    "payment_id": str(payment.id),
                    "month": month,
                    "year": year,
                    "line_items": len(payment.line_items),
                },
            )
            return PaymentInfo.from_model(payment)

        return self._execute("create_draft", AuditOperation.CREATE, None, work)

    def add_line_item(self, payment_id: UUID, record_id: UUID) -> LineItemInfo:
        """Attach one evaluated work record to a draft."""

        def work(actor: ActorIdentity) -> LineItemInfo:
            payment = self._get_payment_for_update(payment_id)
            require_draft(payment.status, payment.id, "add_line_item")
            previous_total = payment.total_amount

            (line_item,) = self._add_records(payment, [record_id], actor)
            payment.updated_by = actor.actor_id
            self._history.append(
                payment,
                ChangeType.LINE_ITEM_ADDED,
                actor,
                description=f"Added work record {record_id}",
                previous_amount=previous_total,
                new_amount=payment.total_amount,
            )
            return LineItemInfo.from_model(line_item)

        return self._execute("add_line_item", AuditOperation.UPDATE, payment_id, work)

    def add_line_items(
        self, payment_id: UUID, record_ids: list[UUID]
    ) -> list[LineItemInfo]:
        """Attach several work records to a draft as one change."""

        def work(actor: ActorIdentity) -> list[LineItemInfo]:
            payment = self._get_payment_for_update(payment_id)
            require_draft(payment.status, payment.id, "add_line_items")
            previous_total = payment.total_amount

            added = self._add_records(payment, record_ids, actor)
            payment.updated_by = actor.actor_id
            self._history.append(
                payment,
                ChangeType.LINE_ITEM_ADDED,
                actor,
                description=f"Added {len(added)} work records",
                previous_amount=previous_total,
                new_amount=payment.total_amount,
            )
            return [LineItemInfo.from_model(li) for li in added]

        return self._execute("add_line_items", AuditOperation.UPDATE, payment_id, work)

    def remove_line_item(self, payment_id: UUID, line_item_id: UUID) -> PaymentInfo:
        """Detach a line item from a draft and release its work record."""

        def work(actor: ActorIdentity) -> PaymentInfo:
            payment = self._get_payment_for_update(payment_id)
            require_draft(payment.status, payment.id, "remove_line_item")

            line_item = next(
                (li for li in payment.line_items if li.id == line_item_id), None
            )
            if line_item is None:
                raise LineItemNotFoundError(payment_id, line_item_id)

            previous_total = payment.total_amount
            self._locks.unlock(line_item.work_record_id, payment.id)
            payment.line_items.remove(line_item)
            payment.recalculate_total()
            payment.updated_by = actor.actor_id
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.LINE_ITEM_REMOVED,
                actor,
                description=f"Removed work record {line_item.work_record_id}",
                previous_amount=previous_total,
                new_amount=payment.total_amount,
            )
            return PaymentInfo.from_model(payment)

        return self._execute("remove_line_item", AuditOperation.UPDATE, payment_id, work)

    def update_payment(
        self,
        payment_id: UUID,
        title: str | None = None,
        remarks: str | None = None,
    ) -> PaymentInfo:
        """Edit the title and/or remarks of a draft."""

        def work(actor: ActorIdentity) -> PaymentInfo:
            payment = self._get_payment_for_update(payment_id)
            require_draft(payment.status, payment.id, "update")

            changed = []
            if title is not None and title != payment.title:
                payment.title = title
                changed.append("title")
            if remarks is not None and remarks != payment.remarks:
                payment.remarks = remarks
                changed.append("remarks")

            if changed:
                payment.updated_by = actor.actor_id
                self._session.flush()
                self._history.append(
                    payment,
                    ChangeType.REMARKS_UPDATED,
                    actor,
                    description=f"Updated {', '.join(changed)}",
                    remarks=remarks,
                )
            return PaymentInfo.from_model(payment)

        return self._execute("update_payment", AuditOperation.UPDATE, payment_id, work)

    def reevaluate_draft(self, payment_id: UUID) -> PaymentInfo:
        """Recompute every line item of a draft from live salary and evaluation data."""

        def work(actor: ActorIdentity) -> PaymentInfo:
            payment = self._get_payment_for_update(payment_id)
            require_draft(payment.status, payment.id, "reevaluate")
            previous_total = payment.total_amount

            self._recompute_line_items(payment, actor)
            payment.updated_by = actor.actor_id
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.REEVALUATED,
                actor,
                description=f"Re-evaluated {len(payment.line_items)} line items",
                previous_amount=previous_total,
                new_amount=payment.total_amount,
            )
            logger.info(
                "payment_reevaluated",
                extra={
                    "payment_id": str(payment.id),
                    "previous_total": previous_total,
                    "new_total": payment.total_amount,
                },
            )
            return PaymentInfo.from_model(payment)

        return self._execute("reevaluate_draft", AuditOperation.UPDATE, payment_id, work)

    # =========================================================================
    # Lifecycle transitions
    # =========================================================================

    def submit(self, payment_id: UUID, remarks: str | None = None) -> PaymentInfo:
        """
        DRAFT -> PENDING_APPROVAL.

        Locks every held work record and captures a snapshot on every line
        item.  Line items are repriced from the live evaluation and
        salary first, so the stored amounts always match the snapshot.

        Raises:
            NotDraftError: payment is not a draft.
            NoLineItemsError: payment has no line items.
        """

        def work(actor: ActorIdentity) -> PaymentInfo:
            payment = self._get_payment_for_update(payment_id)
            previous = PaymentStatus(payment.status)
            transition = resolve_transition(
                previous,
                PaymentAction.SUBMIT,
                payment.id,
                TransitionFacts(line_item_count=len(payment.line_items)),
            )
            target = PaymentStatus(transition.to_state)
            locked = self._apply_record_effect(transition, payment)
            # Evaluations may have changed while the draft held the records
            previous_total = payment.total_amount
            self._recompute_line_items(payment, actor)
            captured = self._snapshots.capture_for_payment(payment)

            now = self._clock.now()
            payment.status = target.value
            payment.submitted_by = actor.actor_id
            payment.submitted_at = now
            payment.remarks = _append_remarks(payment.remarks, remarks)
            payment.updated_by = actor.actor_id
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.SUBMITTED,
                actor,
                description=f"Submitted for approval with {len(payment.line_items)} line items",
                previous_status=previous,
                new_status=target,
                previous_amount=previous_total,
                new_amount=payment.total_amount,
                remarks=remarks,
            )
            logger.info(
                "payment_submitted",
                extra={
                    "payment_id": str(payment.id),
                    "records_locked": locked,
                    "snapshots_captured": captured,
                    "total_amount": payment.total_amount,
                },
            )
            return PaymentInfo.from_model(payment)

        return self._execute("submit", AuditOperation.SUBMIT, payment_id, work)

    def approve(self, payment_id: UUID, remarks: str | None = None) -> PaymentInfo:
        """PENDING_APPROVAL -> APPROVED."""

        def work(actor: ActorIdentity) -> PaymentInfo:
            payment = self._get_payment_for_update(payment_id)
            previous = PaymentStatus(payment.status)
            transition = resolve_transition(
                previous, PaymentAction.APPROVE, payment.id, TransitionFacts()
            )
            target = PaymentStatus(transition.to_state)
            self._apply_record_effect(transition, payment)

            payment.status = target.value
            payment.approved_by = actor.actor_id
            payment.approved_at = self._clock.now()
            payment.remarks = _append_remarks(payment.remarks, remarks)
            payment.updated_by = actor.actor_id
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.APPROVED,
                actor,
                description="Payment approved",
                previous_status=previous,
                new_status=target,
                remarks=remarks,
            )
            logger.info("payment_approved", extra={"payment_id": str(payment.id)})
            return PaymentInfo.from_model(payment)

        return self._execute("approve", AuditOperation.APPROVE, payment_id, work)

    def record_payment(
        self,
        payment_id: UUID,
        payment_date: date,
        reference_number: str,
        remarks: str | None = None,
    ) -> PaymentInfo:
        """
        APPROVED -> PAID.

        Raises:
            NotApprovedError: payment is not approved.
            MissingReferenceError: reference number is blank.
        """

        def work(actor: ActorIdentity) -> PaymentInfo:
            payment = self._get_payment_for_update(payment_id)
            previous = PaymentStatus(payment.status)
            transition = resolve_transition(
                previous,
                PaymentAction.RECORD_PAYMENT,
                payment.id,
                TransitionFacts(reference_number=reference_number),
            )
            target = PaymentStatus(transition.to_state)
            self._apply_record_effect(transition, payment)

            payment.status = target.value
            payment.payment_date = payment_date
            payment.reference_number = reference_number.strip()
            payment.paid_by = actor.actor_id
            payment.paid_at = self._clock.now()
            payment.remarks = _append_remarks(payment.remarks, remarks)
            payment.updated_by = actor.actor_id
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.PAID,
                actor,
                description=f"Payment recorded with reference {payment.reference_number}",
                previous_status=previous,
                new_status=target,
                previous_amount=payment.total_amount,
                new_amount=payment.total_amount,
                remarks=remarks,
            )
            logger.info(
                "payment_recorded",
                extra={
                    "payment_id": str(payment.id),
                    "reference_number": payment.reference_number,
                    "total_amount": payment.total_amount,
                },
            )
            return PaymentInfo.from_model(payment)

        return self._execute("record_payment", AuditOperation.PAY, payment_id, work)

    def cancel(self, payment_id: UUID, reason: str) -> PaymentInfo:
        """
        DRAFT / PENDING_APPROVAL / APPROVED -> CANCELLED.

        Releases every work record held by the payment.  Line items and their
        snapshots are kept as the record of what was cancelled.

        Raises:
            AlreadyPaidError, AlreadyCancelledError: payment is terminal.
            MissingReasonError: reason is blank.
        """

        def work(actor: ActorIdentity) -> PaymentInfo:
            payment = self._get_payment_for_update(payment_id)
            previous = PaymentStatus(payment.status)
            transition = resolve_transition(
                previous, PaymentAction.CANCEL, payment.id, TransitionFacts(reason=reason)
            )
            target = PaymentStatus(transition.to_state)
            released = self._apply_record_effect(transition, payment)

            payment.status = target.value
            payment.cancellation_reason = reason.strip()
            payment.cancelled_by = actor.actor_id
            payment.cancelled_at = self._clock.now()
            payment.updated_by = actor.actor_id
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.CANCELLED,
                actor,
                description=f"Payment cancelled, {released} work records released",
                previous_status=previous,
                new_status=target,
                previous_amount=payment.total_amount,
                new_amount=payment.total_amount,
                remarks=payment.cancellation_reason,
            )
            logger.info(
                "payment_cancelled",
                extra={"payment_id": str(payment.id), "records_released": released},
            )
            return PaymentInfo.from_model(payment)

        return self._execute("cancel", AuditOperation.CANCEL, payment_id, work)

    def delete_draft(self, payment_id: UUID) -> None:
        """
        Hard-delete a draft with its line items, documents and history.

        Raises:
            NotDraftError: payment is not a draft.
        """

        def work(actor: ActorIdentity) -> None:
            payment = self._get_payment_for_update(payment_id)
            require_draft(payment.status, payment.id, "delete")

            released = self._locks.release_all(payment.id)

            self._session.info[PURGE_SESSION_KEY] = payment.id
            try:
                self._session.delete(payment)
                self._session.flush()
            finally:
                self._session.info.pop(PURGE_SESSION_KEY, None)

            logger.info(
                "payment_draft_deleted",
                extra={"payment_id": str(payment_id), "records_released": released},
            )

        self._execute("delete_draft", AuditOperation.DELETE, payment_id, work)

    # =========================================================================
    # Documents
    # =========================================================================

    def add_document(
        self,
        payment_id: UUID,
        file_name: str,
        data: bytes,
        content_type: str | None = None,
        document_type: DocumentType | str = DocumentType.OTHER,
        description: str | None = None,
    ) -> DocumentInfo:
        """Attach a supporting document (any status, including PAID)."""

        def work(actor: ActorIdentity) -> DocumentInfo:
            payment = self._get_payment_for_update(payment_id)
            if not file_name or not file_name.strip():
                raise InvalidDocumentError(file_name or "", "file name is required")
            if not data:
                raise InvalidDocumentError(file_name, "file is empty")
            if len(data) > self._config.max_document_bytes:
                raise InvalidDocumentError(
                    file_name,
                    f"file exceeds {self._config.max_document_bytes} bytes",
                )

            document = PaymentDocument(
                file_name=file_name.strip(),
                content_type=content_type,
                file_size=len(data),
                data=data,
                document_type=DocumentType(document_type).value,
                description=description,
                uploaded_by=actor.actor_id,
                uploaded_at=self._clock.now(),
            )
            payment.documents.append(document)
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.DOCUMENT_ADDED,
                actor,
                description=f"Document added: {document.file_name}",
            )
            return DocumentInfo.from_model(document)

        return self._execute("add_document", AuditOperation.UPDATE, payment_id, work)

    def remove_document(self, payment_id: UUID, document_id: UUID) -> None:
        """Detach a document.  Refused once the payment is PAID or CANCELLED."""

        def work(actor: ActorIdentity) -> None:
            payment = self._get_payment_for_update(payment_id)
            status = PaymentStatus(payment.status)
            if status is PaymentStatus.PAID:
                raise AlreadyPaidError(payment.id)
            if status is PaymentStatus.CANCELLED:
                raise AlreadyCancelledError(payment.id)

            document = next((d for d in payment.documents if d.id == document_id), None)
            if document is None:
                raise DocumentNotFoundError(payment_id, document_id)

            payment.documents.remove(document)
            self._session.flush()

            self._history.append(
                payment,
                ChangeType.DOCUMENT_REMOVED,
                actor,
                description=f"Document removed: {document.file_name}",
            )

        self._execute("remove_document", AuditOperation.UPDATE, payment_id, work)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_payment(self, payment_id: UUID) -> PaymentInfo:
        info = self._selector.get_payment(payment_id)
        if info is None:
            raise PaymentNotFoundError(payment_id)
        return info

    def get_history(self, payment_id: UUID) -> list[HistoryEntryInfo]:
        """History entries of a payment, newest first."""
        if self._session.get(Payment, payment_id) is None:
            raise PaymentNotFoundError(payment_id)
        return self._selector.get_history(payment_id)

    def get_document_data(
        self, payment_id: UUID, document_id: UUID
    ) -> tuple[DocumentInfo, bytes]:
        found = self._selector.get_document(payment_id, document_id)
        if found is None:
            raise DocumentNotFoundError(payment_id, document_id)
        return found
