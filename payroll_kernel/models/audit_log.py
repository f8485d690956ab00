"""
Module: payroll_kernel.models.audit_log
Responsibility: ORM persistence for the operation-level audit trail.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value enums only.

Invariants enforced:
    - One row per public operation attempt, success or failure.
    - Written on its own session by AuditLogService, so a rolled-back
      business transaction still leaves its FAILURE row.

Audit relevance:
    Answers "who tried to do what, from where, and did it work" independently
    of the payment history ledger.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import Base
from payroll_kernel.domain.values import AuditOperation, AuditOutcome


class AuditLogEntry(Base):
    """One audited operation attempt."""

    __tablename__ = "payroll_audit_log"

    __table_args__ = (
        Index("idx_audit_log_entity", "entity_type", "entity_id"),
        Index("idx_audit_log_actor", "actor"),
    )

    operation: Mapped[AuditOperation] = mapped_column(String(20), nullable=False)

    # Service method that was invoked (e.g. "PaymentService.submit")
    method_name: Mapped[str] = mapped_column(String(100), nullable=False)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    outcome: Mapped[AuditOutcome] = mapped_column(String(20), nullable=False)

    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    actor: Mapped[str] = mapped_column(String(100), nullable=False)

    origin: Mapped[str | None] = mapped_column(String(100), nullable=True)

    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    correlation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    duration_ms: Mapped[float | None] = mapped_column(Float, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.method_name} {self.entity_id}: {self.outcome}>"
