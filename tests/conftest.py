"""
Pytest fixtures for the payroll kernel test suite.

Provides:
- A database engine for the whole session and a per-test session that is
  rolled back at teardown
- Service fixtures wired to a DeterministicClock and a static actor
- Factory fixtures for workers, activities, criteria, salaries and
  evaluated work records
- Log capture

Environment Variables:
- DATABASE_URL: connection URL for the test database.  Defaults to an
  in-memory SQLite database; set a PostgreSQL URL to run against the
  production dialect.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from payroll_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from payroll_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.values import CriteriaUnit, RateBasis
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_kernel.models.salary import SalaryRecord
from payroll_kernel.models.work_record import WorkRecord
from payroll_kernel.models.worker import CompletionCriteria, WorkActivity, Worker
from payroll_kernel.services.audit_log_service import AuditLogService
from payroll_kernel.services.lookups import StaticActorProvider
from payroll_kernel.services.payment_service import PaymentService
from payroll_kernel.services.salary_service import SalaryService
from payroll_kernel.services.work_record_service import WorkRecordService

# Actor for all test operations
TEST_ACTOR_ID = "test-user"
TEST_ORIGIN = "10.0.0.1"

DEFAULT_TEST_URL = "sqlite+pysqlite:///:memory:"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_TEST_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, payment_service):
            payment_service.create_draft(1, 2024)
            logs = captured_logs()
            assert any(r["message"] == "payment_draft_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def db_connection(db_tables, db_engine):
    """Dedicated connection holding the outer per-test transaction."""
    conn = db_engine.connect()
    trans = conn.begin()
    yield conn
    try:
        trans.rollback()
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db_connection) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins the outer transaction of ``db_connection``:
    ``session.commit()`` releases a savepoint and ``session.rollback()``
    rolls back to it, so services that own their transaction behave as in
    production while every change is undone at teardown.
    """
    sess = Session(
        bind=db_connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    yield sess
    sess.close()


@pytest.fixture
def audit_session_factory(db_connection) -> sessionmaker:
    """Session factory for the audit log, joined to the test transaction."""
    return sessionmaker(
        bind=db_connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )


@pytest.fixture
def test_actor_id() -> str:
    """Provide a consistent test actor id."""
    return TEST_ACTOR_ID


# Clock fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def actor_provider():
    return StaticActorProvider(TEST_ACTOR_ID, origin=TEST_ORIGIN, user_agent="pytest")


@pytest.fixture
def audit_log_service(audit_session_factory) -> AuditLogService:
    return AuditLogService(audit_session_factory)


@pytest.fixture
def payment_service(
    session, actor_provider, audit_log_service, deterministic_clock
) -> PaymentService:
    return PaymentService(
        session,
        actor_provider,
        audit_log=audit_log_service,
        clock=deterministic_clock,
    )


@pytest.fixture
def salary_service(session, deterministic_clock) -> SalaryService:
    return SalaryService(session, deterministic_clock)


@pytest.fixture
def work_record_service(session, deterministic_clock) -> WorkRecordService:
    return WorkRecordService(session, deterministic_clock)


# =============================================================================
# Test data generators
# =============================================================================
#
# Factories commit (which releases the test savepoint) so that a service
# rolling back a failed operation does not discard the setup data.


@pytest.fixture
def create_worker(session: Session, test_actor_id: str):
    """Factory fixture to create test workers."""

    def _create_worker(
        name: str = "Lakshmi Devi",
        phone: str | None = "9800000001",
        pf_account_id: str | None = "PF-0001",
    ) -> Worker:
        worker = Worker(
            name=name,
            phone=phone,
            pf_account_id=pf_account_id,
            is_active=True,
            created_by=test_actor_id,
        )
        session.add(worker)
        session.commit()
        return worker

    return _create_worker


@pytest.fixture
def create_activity(session: Session, test_actor_id: str):
    """Factory fixture to create work activities."""

    def _create_activity(
        name: str = "Plucking",
        description: str | None = "Green leaf plucking",
    ) -> WorkActivity:
        activity = WorkActivity(
            name=name,
            description=description,
            created_by=test_actor_id,
        )
        session.add(activity)
        session.commit()
        return activity

    return _create_activity


@pytest.fixture
def create_criteria(session: Session, test_actor_id: str):
    """Factory fixture to create completion criteria."""

    def _create_criteria(
        activity: WorkActivity,
        value: Decimal = Decimal("25"),
        unit: CriteriaUnit = CriteriaUnit.KG,
        start_date: date = date(2024, 1, 1),
        end_date: date | None = None,
    ) -> CompletionCriteria:
        criteria = CompletionCriteria(
            activity_id=activity.id,
            unit=unit.value,
            value=value,
            start_date=start_date,
            end_date=end_date,
            is_active=True,
            created_by=test_actor_id,
        )
        session.add(criteria)
        session.commit()
        return criteria

    return _create_criteria


@pytest.fixture
def create_salary(session: Session, test_actor_id: str):
    """Factory fixture to create an open-ended salary record."""

    def _create_salary(
        worker: Worker,
        amount: Decimal = Decimal("3500"),
        rate_basis: RateBasis = RateBasis.WEEKLY,
        voluntary_pf_percent: Decimal = Decimal("2"),
        start_date: date = date(2023, 1, 1),
    ) -> SalaryRecord:
        salary = SalaryRecord(
            worker_id=worker.id,
            amount=amount,
            rate_basis=rate_basis.value,
            voluntary_pf_percent=voluntary_pf_percent,
            currency="INR",
            start_date=start_date,
            end_date=None,
            is_active=True,
            created_by=test_actor_id,
        )
        session.add(salary)
        session.commit()
        return salary

    return _create_salary


@pytest.fixture
def create_work_record(session: Session, test_actor_id: str, deterministic_clock):
    """Factory fixture to create work records, evaluated by default."""

    def _create_work_record(
        worker: Worker,
        activity: WorkActivity,
        assignment_date: date = date(2024, 1, 15),
        completion_percentage: Decimal | None = Decimal("90"),
    ) -> WorkRecord:
        record = WorkRecord(
            worker_id=worker.id,
            activity_id=activity.id,
            assignment_date=assignment_date,
            activity_name=activity.name,
            activity_description=activity.description,
            evaluation_status="assigned",
            evaluation_count=0,
            is_deleted=False,
            created_by=test_actor_id,
        )
        if completion_percentage is not None:
            now = deterministic_clock.now()
            record.evaluation_status = "completed"
            record.completion_percentage = completion_percentage
            record.completed_date = assignment_date
            record.evaluation_count = 1
            record.first_evaluated_at = now
            record.last_evaluated_at = now
        session.add(record)
        session.commit()
        return record

    return _create_work_record


@pytest.fixture
def payroll_setup(create_worker, create_activity, create_criteria, create_salary):
    """One worker on 3500 WEEKLY with 2% voluntary PF, one activity with criteria."""
    worker = create_worker()
    activity = create_activity()
    criteria = create_criteria(activity)
    salary = create_salary(worker)
    return worker, activity, criteria, salary


@pytest.fixture
def evaluated_records(payroll_setup, create_work_record):
    """Factory for N evaluated (90%) records of the setup worker on distinct days."""
    worker, activity, _, _ = payroll_setup

    def _make(count: int = 3) -> list[WorkRecord]:
        return [
            create_work_record(worker, activity, assignment_date=date(2024, 1, 1 + i))
            for i in range(count)
        ]

    return _make