"""
Structured JSON logging for the payroll kernel.

Every line written while a PaymentService operation is running carries
that operation's audit envelope: correlation id, actor, origin, user
agent, audit operation, method and target entity.  PaymentService binds
its AuditContext once with ``LogContext.bind_audit()``; the lock service,
snapshot capture and history ledger log underneath it without having the
context threaded through their signatures.  A line therefore joins the
AuditLogEntry it belongs to on ``correlation_id``.

Kernel exceptions are lifted into a nested ``error`` object (type,
message, code and the structured attributes the exception carries).
"""

from __future__ import annotations

__all__ = [
    "AUDIT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from payroll_kernel.domain.audit_context import AuditContext

_LOGGER_PREFIX = "payroll_kernel"

# Fields of the audit envelope, in output order.
AUDIT_FIELDS = (
    "correlation_id",
    "actor_id",
    "origin",
    "user_agent",
    "operation",
    "method_name",
    "entity_type",
    "entity_id",
)

_EMPTY: Mapping[str, str] = {}

# ---------------------------------------------------------------------------
# Audit envelope propagation
# ---------------------------------------------------------------------------


class LogContext:
    """The audit envelope of the operation in progress (async and thread safe)."""

    _envelope: ContextVar[Mapping[str, str]] = ContextVar(
        "payroll_log_envelope", default=_EMPTY
    )

    @classmethod
    def current(cls) -> dict[str, str]:
        return dict(cls._envelope.get())

    @classmethod
    def clear(cls) -> None:
        cls._envelope.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind_audit(cls, context: AuditContext) -> Iterator[None]:
        """Bind an AuditContext for the duration of one operation."""
        with cls.bind(
            correlation_id=context.correlation_id,
            actor_id=context.actor_id,
            origin=context.origin,
            user_agent=context.user_agent,
            operation=context.operation,
            method_name=context.method_name,
            entity_type=context.entity_type,
            entity_id=context.entity_id,
        ):
            yield

    @classmethod
    @contextmanager
    def bind(cls, **fields: object) -> Iterator[None]:
        """Overlay envelope fields; None values are skipped, the rest stringified.

        Raises ValueError for a name outside AUDIT_FIELDS.
        """
        unknown = set(fields) - set(AUDIT_FIELDS)
        if unknown:
            raise ValueError(f"Not an audit envelope field: {sorted(unknown)}")

        merged = dict(cls._envelope.get())
        for name, value in fields.items():
            if value is not None:
                merged[name] = _stringify(value)
        token = cls._envelope.set(merged)
        try:
            yield
        finally:
            cls._envelope.reset(token)


def _stringify(value: object) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    """Serialise the domain values services pass in ``extra``."""
    if isinstance(obj, (UUID, Decimal)):
        # Money stays exact: Decimal is written as its string form
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _error_payload(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        error["code"] = code
    # Identifiers carried by PayrollKernelError subclasses
    for key, value in vars(exc).items():
        if not key.startswith("_") and key not in ("args", "code"):
            error[key] = value
    return error


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: envelope, then ``extra`` fields, then ``error``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.current())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _error_payload(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory and initialisation
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the payroll_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _kernel_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if isinstance(h.formatter, StructuredFormatter)]


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the payroll_kernel logger.

    A no-op when a StructuredFormatter handler is already attached, so that
    ``init_engine_from_url`` can call it unconditionally.
    """
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    if _kernel_handlers(root_logger):
        return

    root_logger.setLevel(level)
    root_logger.propagate = False
    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Detach the JSON handlers. FOR TESTING ONLY."""
    logger = logging.getLogger(_LOGGER_PREFIX)
    for h in _kernel_handlers(logger):
        logger.removeHandler(h)
    logger.setLevel(logging.WARNING)
