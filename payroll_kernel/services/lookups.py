"""
Collaborator protocols consumed by the payroll core.

Responsibility:
    Declares the three things the core needs from the outside world (the
    salary in force for a worker, the completion criteria in force for an
    activity, and the identity of the acting user) and ships SQL-backed
    and static default implementations.

Architecture position:
    Kernel > Services.  PaymentService, SnapshotService and
    WorkRecordService depend on the protocols only; tests substitute
    their own implementations freely.

Invariants enforced:
    - Lookups are read-only and never flush.
    - "In force on" is inclusive at both ends; an open end date never
      expires.  When intervals overlap the latest start date wins.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.audit_context import SYSTEM_ACTOR, ActorIdentity
from payroll_kernel.models.salary import SalaryRecord
from payroll_kernel.models.worker import CompletionCriteria


@runtime_checkable
class SalaryLookup(Protocol):
    def current_salary(self, worker_id: UUID, as_of: date) -> SalaryRecord | None: ...


@runtime_checkable
class CriteriaLookup(Protocol):
    def active_criteria(
        self, activity_id: UUID, as_of: date
    ) -> CompletionCriteria | None: ...


@runtime_checkable
class ActorProvider(Protocol):
    def current_actor(self) -> ActorIdentity: ...


class SqlSalaryLookup:
    """Salary record in force for a worker on a date, read from the database."""

    def __init__(self, session: Session):
        self._session = session

    def current_salary(self, worker_id: UUID, as_of: date) -> SalaryRecord | None:
        stmt = (
            select(SalaryRecord)
            .where(
                SalaryRecord.worker_id == worker_id,
                SalaryRecord.start_date <= as_of,
                or_(SalaryRecord.end_date.is_(None), SalaryRecord.end_date >= as_of),
            )
            .order_by(SalaryRecord.start_date.desc())
            .limit(1)
        )
        return self._session.execute(stmt).scalar_one_or_none()


class SqlCriteriaLookup:
    """Active completion criteria for an activity on a date."""

    def __init__(self, session: Session):
        self._session = session

    def active_criteria(
        self, activity_id: UUID, as_of: date
    ) -> CompletionCriteria | None:
        stmt = (
            select(CompletionCriteria)
            .where(
                CompletionCriteria.activity_id == activity_id,
                CompletionCriteria.is_active.is_(True),
                CompletionCriteria.start_date <= as_of,
                or_(
                    CompletionCriteria.end_date.is_(None),
                    CompletionCriteria.end_date >= as_of,
                ),
            )
            .order_by(CompletionCriteria.start_date.desc())
            .limit(1)
        )
        return self._session.execute(stmt).scalar_one_or_none()


class StaticActorProvider:
    """Always reports the same actor.  Used by batch jobs and tests."""

    def __init__(
        self,
        actor_id: str = SYSTEM_ACTOR,
        origin: str | None = None,
        user_agent: str | None = None,
    ):
        self._actor = ActorIdentity(actor_id=actor_id, origin=origin, user_agent=user_agent)

    def current_actor(self) -> ActorIdentity:
        return self._actor
