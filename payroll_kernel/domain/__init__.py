"""
Pure domain layer.

This package contains value objects and domain logic with NO dependencies on:
- Database sessions
- Wall-clock time (see clock.Clock)
- I/O

All domain objects are immutable and deterministic.
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.payability import (
    Payability,
    PayabilityState,
    derive_payability,
)
from payroll_kernel.domain.payment_workflow import (
    PAYMENT_WORKFLOW,
    PaymentAction,
    PaymentStatus,
    TransitionFacts,
    next_status,
    resolve_transition,
)
from payroll_kernel.domain.wage_calculator import (
    SalaryTerms,
    WageBreakdown,
    compute_line_item,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "PAYMENT_WORKFLOW",
    "Payability",
    "PayabilityState",
    "PaymentAction",
    "PaymentStatus",
    "SalaryTerms",
    "SystemClock",
    "TransitionFacts",
    "WageBreakdown",
    "compute_line_item",
    "derive_payability",
    "next_status",
    "resolve_transition",
]
