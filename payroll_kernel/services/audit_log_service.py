"""
AuditLogService -- operation-level audit trail.

Responsibility:
    Writes one ``AuditLogEntry`` per public PaymentService operation,
    recording who did what to which entity and whether it succeeded.

Architecture position:
    Kernel > Services.  Owns its own sessions (from a session factory) so
    that a FAILURE entry survives the rollback of the business transaction
    it describes.  May run inline or on a ``concurrent.futures`` executor.

Invariants enforced:
    - The AuditContext is captured by the caller before hand-off; the
      writer never reads request-scoped state (LogContext, actor provider).
    - Each entry is committed in its own transaction.

Failure modes:
    - A failed write never reaches the caller: it is logged as
      ``audit_log_write_failed`` with the method, entity and correlation id.
      Inline, ``record()`` then returns None; on an executor the Future
      still carries the exception.

Audit relevance:
    This is the answer to "who attempted what, from where, and when",
    including attempts that were refused.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future

from sqlalchemy.orm import Session, sessionmaker

from payroll_kernel.domain.audit_context import AuditContext
from payroll_kernel.domain.dtos import AuditLogInfo
from payroll_kernel.domain.values import AuditOutcome
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.audit_log import AuditLogEntry

logger = get_logger("services.audit_log")

_MAX_ERROR_MESSAGE = 2000


class AuditLogService:
    """
    Records AuditLogEntry rows, inline or on an executor.

    Contract:
        ``record()`` returns the written entry as an ``AuditLogInfo`` when
        running inline, or a ``Future`` resolving to it when an executor
        was supplied.  A write that fails inline returns None.

    Non-goals:
        - Does not retry failed writes.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        executor: Executor | None = None,
    ):
        self._session_factory = session_factory
        self._executor = executor

    def record(
        self,
        context: AuditContext,
        outcome: AuditOutcome,
        error: BaseException | None = None,
        duration_ms: float | None = None,
    ) -> AuditLogInfo | Future[AuditLogInfo] | None:
        if self._executor is None:
            try:
                return self._write(context, outcome, error, duration_ms)
            except Exception as exc:
                self._log_write_failure(context, outcome, exc)
                return None

        future = self._executor.submit(self._write, context, outcome, error, duration_ms)
        future.add_done_callback(
            lambda done: self._check_future(done, context, outcome)
        )
        return future

    def _check_future(
        self, future: Future[AuditLogInfo], context: AuditContext, outcome: AuditOutcome
    ) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self._log_write_failure(context, outcome, exc)

    def _log_write_failure(
        self, context: AuditContext, outcome: AuditOutcome, exc: BaseException
    ) -> None:
        logger.error(
            "audit_log_write_failed",
            extra={
                "method_name": context.method_name,
                "entity_id": context.entity_id,
                "outcome": outcome.value,
                "correlation_id": context.correlation_id,
                "error_code": getattr(exc, "code", type(exc).__name__),
            },
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    def _write(
        self,
        context: AuditContext,
        outcome: AuditOutcome,
        error: BaseException | None,
        duration_ms: float | None,
    ) -> AuditLogInfo:
        error_code = getattr(error, "code", type(error).__name__) if error else None
        error_message = str(error)[:_MAX_ERROR_MESSAGE] if error else None

        with self._session_factory() as session:
            entry = AuditLogEntry(
                operation=context.operation.value,
                method_name=context.method_name,
                entity_type=context.entity_type,
                entity_id=context.entity_id,
                outcome=outcome.value,
                error_code=error_code,
                error_message=error_message,
                actor=context.actor_id,
                origin=context.origin,
                user_agent=context.user_agent,
                correlation_id=context.correlation_id,
                duration_ms=duration_ms,
                occurred_at=context.captured_at,
            )
            session.add(entry)
            session.commit()
            info = AuditLogInfo.from_model(entry)

        logger.debug(
            "audit_log_written",
            extra={
                "method_name": context.method_name,
                "entity_id": context.entity_id,
                "outcome": outcome.value,
            },
        )
        return info
