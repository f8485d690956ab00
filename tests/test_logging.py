"""
Tests for payroll_kernel/logging_config.py.

Covers:
- The audit envelope bound by PaymentService reaches every layer's log lines
  and joins them to the AuditLogEntry on correlation_id
- bind_audit / bind scoping and restoration
- Kernel exceptions lifted into the ``error`` object
- Money and identifiers serialised exactly
- configure_logging / reset_logging
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from payroll_kernel.domain.audit_context import ActorIdentity, AuditContext
from payroll_kernel.domain.values import AuditOperation
from payroll_kernel.exceptions import PaymentNotFoundError, RecordAlreadyHeldError
from payroll_kernel.logging_config import (
    AUDIT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from payroll_kernel.selectors.audit_log_selector import AuditLogSelector
from tests.conftest import TEST_ACTOR_ID, TEST_ORIGIN


@pytest.fixture
def approve_context():
    return AuditContext.capture(
        ActorIdentity("clerk-7", origin="192.168.1.20"),
        operation=AuditOperation.APPROVE,
        method_name="PaymentService.approve",
        entity_type="Payment",
        entity_id=uuid4(),
        captured_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        correlation_id="corr-approve",
    )


@pytest.fixture
def stream():
    """A StructuredFormatter handler on a child logger, returning its lines."""
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(StructuredFormatter())
    logger = get_logger("services.assignment_lock")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    def _lines() -> list[dict]:
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    yield _lines

    logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


class TestPaymentOperationEnvelope:
    def test_every_line_carries_the_operation(
        self, payment_service, evaluated_records, captured_logs
    ):
        (record,) = evaluated_records(1)
        draft = payment_service.create_draft(1, 2024, record_ids=[record.id])
        payment_service.submit(draft.id)

        submit_lines = [
            r for r in captured_logs() if r.get("method_name") == "PaymentService.submit"
        ]
        messages = {r["message"] for r in submit_lines}
        # Lock service and history ledger log under the submit envelope
        assert {"payment_operation_started", "work_record_locked", "payment_submitted"} <= messages
        assert len({r["correlation_id"] for r in submit_lines}) == 1
        assert all(r["actor_id"] == TEST_ACTOR_ID for r in submit_lines)
        assert all(r["origin"] == TEST_ORIGIN for r in submit_lines)
        assert all(r["user_agent"] == "pytest" for r in submit_lines)
        assert all(r["operation"] == "submit" for r in submit_lines)

    def test_lines_join_the_audit_entry(self, payment_service, captured_logs, session):
        draft = payment_service.create_draft(1, 2024)
        payment_service.update_payment(draft.id, title="Week 4")

        (entry,) = [
            e
            for e in AuditLogSelector(session).list_entries(entity_id=draft.id)
            if e.method_name == "PaymentService.update_payment"
        ]
        joined = [r for r in captured_logs() if r.get("correlation_id") == entry.correlation_id]

        messages = [r["message"] for r in joined]
        assert messages[0] == "payment_operation_started"
        assert "payment_history_appended" in messages
        assert messages[-1] == "payment_operation_completed"
        assert all(r["entity_id"] == str(draft.id) for r in joined)

    def test_envelope_released_after_operation(self, payment_service):
        payment_service.create_draft(1, 2024)
        assert LogContext.current() == {}

    def test_envelope_released_after_failure(self, payment_service):
        with pytest.raises(PaymentNotFoundError):
            payment_service.submit(uuid4())
        assert LogContext.current() == {}


class TestLogContext:
    def test_bind_audit_fields(self, approve_context, stream):
        with LogContext.bind_audit(approve_context):
            get_logger("services.assignment_lock").info("work_record_locked")

        (line,) = stream()
        assert line["correlation_id"] == "corr-approve"
        assert line["actor_id"] == "clerk-7"
        assert line["origin"] == "192.168.1.20"
        assert line["operation"] == "approve"
        assert line["method_name"] == "PaymentService.approve"
        assert line["entity_type"] == "Payment"
        assert line["entity_id"] == approve_context.entity_id
        # No user agent was reported, so none is written
        assert "user_agent" not in line

    def test_envelope_field_order(self, approve_context):
        with LogContext.bind_audit(approve_context):
            bound = list(LogContext.current())
        assert bound == [f for f in AUDIT_FIELDS if f != "user_agent"]

    def test_bind_overlays_and_restores(self, approve_context):
        record_id = uuid4()
        with LogContext.bind_audit(approve_context):
            with LogContext.bind(entity_type="WorkRecord", entity_id=record_id):
                inner = LogContext.current()
            outer = LogContext.current()

        assert inner["entity_type"] == "WorkRecord"
        assert inner["entity_id"] == str(record_id)
        assert inner["correlation_id"] == "corr-approve"
        assert outer["entity_type"] == "Payment"
        assert LogContext.current() == {}

    def test_bind_rejects_fields_outside_envelope(self):
        with pytest.raises(ValueError, match="payment_total"):
            with LogContext.bind(payment_total="10"):
                pass

    def test_restored_when_body_raises(self, approve_context):
        with pytest.raises(RuntimeError):
            with LogContext.bind_audit(approve_context):
                raise RuntimeError("boom")
        assert LogContext.current() == {}


class TestStructuredFormatter:
    def test_kernel_error_lifted(self, stream):
        record_id, holder = uuid4(), uuid4()
        try:
            raise RecordAlreadyHeldError(record_id, held_by_payment_id=holder)
        except RecordAlreadyHeldError:
            get_logger("services.assignment_lock").error("hold_refused", exc_info=True)

        (line,) = stream()
        assert line["error"]["type"] == "RecordAlreadyHeldError"
        assert line["error"]["code"] == "RECORD_ALREADY_HELD"
        assert line["error"]["record_id"] == str(record_id)
        assert line["error"]["held_by_payment_id"] == str(holder)
        assert line["error"]["payment_id"] is None
        assert "Traceback" in line["traceback"]

    def test_money_written_exactly(self, stream):
        get_logger("services.assignment_lock").info(
            "payment_submitted",
            extra={"total_amount": Decimal("1350.10"), "payment_id": uuid4()},
        )

        (line,) = stream()
        assert line["total_amount"] == "1350.10"

    def test_extra_never_overrides_envelope(self, approve_context, stream):
        with LogContext.bind_audit(approve_context):
            get_logger("services.assignment_lock").info(
                "work_record_locked", extra={"actor_id": "spoofed"}
            )

        (line,) = stream()
        assert line["actor_id"] == "clerk-7"


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_suite_logging(self):
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def test_idempotent(self):
        configure_logging(stream=StringIO())
        configure_logging(stream=StringIO())

        root = logging.getLogger("payroll_kernel")
        assert len([h for h in root.handlers if isinstance(h.formatter, StructuredFormatter)]) == 1

    def test_reset_detaches_only_kernel_handlers(self):
        root = logging.getLogger("payroll_kernel")
        foreign = logging.NullHandler()
        root.addHandler(foreign)
        configure_logging(stream=StringIO())

        reset_logging()

        assert root.handlers == [foreign]
        root.removeHandler(foreign)
