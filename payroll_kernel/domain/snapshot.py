"""
LineItemSnapshot -- frozen facts behind a payment line item.

Responsibility:
    Captures, as plain values, everything that was used to compute a line
    item (worker identity, salary terms, PF percentages, activity, criteria
    and evaluation results) so that later edits to master data cannot change
    what an approver saw.

Architecture position:
    Kernel > Domain -- pure value object.  Built by SnapshotService at the
    DRAFT -> PENDING_APPROVAL transition and written onto the line item's
    ``snapshot_*`` columns.

Invariants enforced:
    - A snapshot is written at most once per line item
      (``snapshot_captured_at`` is the write-once marker).
    - Snapshot and calculated columns of a captured line item are immutable
      (enforced by db/immutability.py).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

SNAPSHOT_PREFIX = "snapshot_"

# Monetary figures computed by the wage calculator; frozen with the snapshot.
CALCULATED_COLUMNS: tuple[str, ...] = (
    "quantity",
    "rate",
    "amount",
    "employee_pf",
    "voluntary_pf",
    "employer_pf",
    "pf_total",
    "other_deductions",
    "net_amount",
    "salary_record_id",
)


@dataclass(frozen=True)
class LineItemSnapshot:
    """Point-in-time copy of the sources of one line item.

    Contract: frozen; every field maps to ``snapshot_<field>`` on the line item.
    Non-goals: does not recompute amounts; the calculated columns are frozen
    alongside it as they stand at capture time.
    """

    worker_name: str | None
    worker_phone: str | None
    worker_pf_account_id: str | None
    salary_amount: Decimal | None
    salary_rate_basis: str | None
    employee_pf_percent: Decimal
    voluntary_pf_percent: Decimal
    employer_pf_percent: Decimal
    activity_name: str | None
    activity_description: str | None
    criteria_unit: str | None
    criteria_value: Decimal | None
    completion_percentage: Decimal | None
    actual_value: Decimal | None
    actual_duration_hours: Decimal | None
    completed_date: date | None
    completion_notes: str | None

    def column_values(self) -> dict[str, Any]:
        """Snapshot values keyed by line item column name."""
        return {f"{SNAPSHOT_PREFIX}{k}": v for k, v in asdict(self).items()}


SNAPSHOT_COLUMNS: tuple[str, ...] = tuple(
    f"{SNAPSHOT_PREFIX}{name}" for name in LineItemSnapshot.__dataclass_fields__
) + ("snapshot_captured_at",)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def build_snapshot(
    *,
    worker: Any,
    salary: Any | None,
    activity: Any | None,
    criteria: Any | None,
    record: Any,
    employee_pf_percent: Decimal,
    employer_pf_percent: Decimal,
) -> LineItemSnapshot:
    """Assemble a snapshot from the live source objects.

    ``salary``, ``activity`` and ``criteria`` may be None; the corresponding
    snapshot fields are then left empty.  The activity name and description
    fall back to the copy held on the work record.
    """
    voluntary = Decimal("0")
    if salary is not None and salary.voluntary_pf_percent is not None:
        voluntary = salary.voluntary_pf_percent

    return LineItemSnapshot(
        worker_name=worker.name,
        worker_phone=worker.phone,
        worker_pf_account_id=worker.pf_account_id,
        salary_amount=salary.amount if salary is not None else None,
        salary_rate_basis=_enum_value(salary.rate_basis) if salary is not None else None,
        employee_pf_percent=employee_pf_percent,
        voluntary_pf_percent=voluntary,
        employer_pf_percent=employer_pf_percent,
        activity_name=activity.name if activity is not None else record.activity_name,
        activity_description=(
            activity.description if activity is not None else record.activity_description
        ),
        criteria_unit=_enum_value(criteria.unit) if criteria is not None else None,
        criteria_value=criteria.value if criteria is not None else None,
        completion_percentage=record.completion_percentage,
        actual_value=record.actual_value,
        actual_duration_hours=record.actual_duration_hours,
        completed_date=record.completed_date,
        completion_notes=record.completion_notes,
    )


def apply_snapshot(
    line_item: Any, snapshot: LineItemSnapshot, captured_at: datetime
) -> bool:
    """Write ``snapshot`` onto ``line_item`` unless one is already captured.

    Returns True when the snapshot was written, False on the idempotent path.
    """
    if line_item.snapshot_captured_at is not None:
        return False
    for column, value in snapshot.column_values().items():
        setattr(line_item, column, value)
    line_item.snapshot_captured_at = captured_at
    return True
