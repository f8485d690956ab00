"""
BaseService -- abstract base for the flush-only kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    services that PaymentService composes (assignment locks, snapshots,
    history) and for the master data services (salary, work records).
    They receive a SQLAlchemy ``Session`` and use ``session.flush()``,
    never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or roll back themselves.  The caller
      (PaymentService, or the application / test harness for the master
      data services) owns commit/rollback.

Failure modes:
    - If a subclass calls ``session.commit()`` the all-or-nothing guarantee
      of a payment operation (locks + snapshots + history) is broken.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from payroll_kernel.db.base import Base
from payroll_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - Time is read only through the injected ``Clock``.

    Non-goals:
        - Does NOT provide query-only (read) methods for callers; those
          belong in ``payroll_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
