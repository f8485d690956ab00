"""
AuditContext -- plain-data description of who is doing what.

Responsibility:
    Carries the acting user, their origin (IP address or host), user agent
    and the operation being performed from the request thread to wherever
    the audit entry is written.

Architecture position:
    Kernel > Domain -- pure value objects.  Built synchronously by
    PaymentService from the ActorProvider *before* any hand-off, so an audit
    writer running on another thread never needs request-scoped state.

Invariants enforced:
    - AuditContext is frozen; nothing downstream can alter the actor.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from payroll_kernel.domain.values import AuditOperation

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class ActorIdentity:
    """Who is acting, as reported by the ActorProvider."""

    actor_id: str
    origin: str | None = None
    user_agent: str | None = None

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("actor_id must be a non-empty string")


@dataclass(frozen=True)
class AuditContext:
    """Everything the operation audit log records about one call.

    Contract: frozen, captured before any thread hand-off.
    """

    actor_id: str
    origin: str | None
    user_agent: str | None
    operation: AuditOperation
    method_name: str
    entity_type: str
    entity_id: str | None
    captured_at: datetime
    correlation_id: str | None = None

    @classmethod
    def capture(
        cls,
        actor: ActorIdentity,
        *,
        operation: AuditOperation,
        method_name: str,
        entity_type: str,
        entity_id: object | None,
        captured_at: datetime,
        correlation_id: str | None = None,
    ) -> AuditContext:
        return cls(
            actor_id=actor.actor_id,
            origin=actor.origin,
            user_agent=actor.user_agent,
            operation=operation,
            method_name=method_name,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            captured_at=captured_at,
            correlation_id=correlation_id,
        )

    def with_entity_id(self, entity_id: object) -> AuditContext:
        """Copy with the entity id filled in (e.g. after a create)."""
        return replace(self, entity_id=str(entity_id))
