"""
Module: payroll_kernel.selectors.audit_log_selector
Responsibility: Read access to the operation audit log.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from sqlalchemy import select

from payroll_kernel.domain.dtos import AuditLogInfo
from payroll_kernel.models.audit_log import AuditLogEntry
from payroll_kernel.selectors.base import BaseSelector


class AuditLogSelector(BaseSelector[AuditLogEntry]):
    """Audit log queries, newest first."""

    def list_entries(
        self,
        entity_id: object | None = None,
        actor: str | None = None,
        limit: int | None = None,
    ) -> list[AuditLogInfo]:
        stmt = select(AuditLogEntry)
        if entity_id is not None:
            stmt = stmt.where(AuditLogEntry.entity_id == str(entity_id))
        if actor is not None:
            stmt = stmt.where(AuditLogEntry.actor == actor)
        stmt = stmt.order_by(AuditLogEntry.occurred_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [AuditLogInfo.from_model(e) for e in self.session.scalars(stmt)]
