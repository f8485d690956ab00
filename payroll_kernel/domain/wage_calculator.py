"""
WageCalculator -- deterministic wage and provident fund computation.

Responsibility:
    Turns a salary (amount + rate basis + voluntary PF percentage) and an
    evaluated completion percentage into the monetary breakdown of a single
    payment line item.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by
    PaymentService when a work record is added to a draft and when a
    draft is re-evaluated.

Invariants enforced:
    - All arithmetic is Decimal; every monetary result is rounded half-up
      to the configured money precision (2 places by default).
    - Completion rate is rounded half-up to 4 places before use.
    - Employer PF is informational and never deducted from the net amount.
    - net_amount = amount - (employee_pf + voluntary_pf) - other_deductions.

Failure modes:
    - InvalidCompletionPercentageError when the percentage is missing or
      outside 0..100.
    - ValueError on a negative salary amount or an unknown rate basis.

Audit relevance:
    The breakdown is copied onto the line item and frozen by the snapshot at
    submission; given the same salary, percentage and configuration, the
    calculator always reproduces the same figures.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from payroll_config.schema import DEFAULT_WAGE_CONFIG, WageConfig
from payroll_kernel.db.types import round_money, to_decimal
from payroll_kernel.domain.values import RateBasis
from payroll_kernel.exceptions import InvalidCompletionPercentageError

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class SalaryLike(Protocol):
    """Anything carrying the three salary facts the calculator needs."""

    amount: Decimal
    rate_basis: RateBasis | str
    voluntary_pf_percent: Decimal | None


@dataclass(frozen=True)
class SalaryTerms:
    """Plain value form of the salary facts used in a calculation."""

    amount: Decimal
    rate_basis: RateBasis
    voluntary_pf_percent: Decimal = _ZERO


@dataclass(frozen=True)
class WageBreakdown:
    """Computed monetary figures for one line item.

    Contract: frozen; every monetary field is already rounded.
    Guarantees: ``pf_total == employee_pf + voluntary_pf`` and
    ``net_amount == amount - pf_total - other_deductions``.
    """

    quantity: Decimal
    rate: Decimal
    amount: Decimal
    employee_pf: Decimal
    voluntary_pf: Decimal
    employer_pf: Decimal
    pf_total: Decimal
    other_deductions: Decimal
    net_amount: Decimal
    completion_rate: Decimal


def daily_rate(
    amount: Decimal,
    rate_basis: RateBasis | str,
    config: WageConfig = DEFAULT_WAGE_CONFIG,
) -> Decimal:
    """Convert a salary amount quoted per day/week/month into a daily rate.

    The quotient keeps ``rate_decimal_places`` so that it can still be
    multiplied by a completion rate; only the resulting amount is money.
    """
    amount = to_decimal(amount)
    if amount < _ZERO:
        raise ValueError(f"Salary amount cannot be negative: {amount}")

    basis = RateBasis(rate_basis)
    if basis is RateBasis.DAILY:
        rate = amount
    elif basis is RateBasis.WEEKLY:
        rate = amount / Decimal(config.weekly_divisor)
    else:
        rate = amount / Decimal(config.monthly_divisor)
    return round_money(rate, config.rate_decimal_places)


def completion_rate(
    completion_percentage: Decimal | int | str | None,
    config: WageConfig = DEFAULT_WAGE_CONFIG,
) -> Decimal:
    """Validate a completion percentage and express it as a 0..1 rate."""
    if completion_percentage is None:
        raise InvalidCompletionPercentageError("None")
    percentage = to_decimal(completion_percentage)
    if percentage < _ZERO or percentage > _HUNDRED:
        raise InvalidCompletionPercentageError(percentage)
    return round_money(percentage / _HUNDRED, config.rate_decimal_places)


def percent_of(amount: Decimal, percent: Decimal, config: WageConfig) -> Decimal:
    return round_money(amount * to_decimal(percent) / _HUNDRED, config.money_decimal_places)


def compute_line_item(
    salary: SalaryLike,
    completion_percentage: Decimal | int | str | None,
    *,
    other_deductions: Decimal | int | str | None = None,
    config: WageConfig | None = None,
) -> WageBreakdown:
    """
    Compute the wage breakdown for one evaluated work record.

    Preconditions:
        - ``salary.amount`` is a non-negative Decimal.
        - ``completion_percentage`` lies in 0..100.

    Postconditions:
        - quantity is 1 and rate is the daily rate at rate precision.
        - amount = round(daily rate x completion rate); the daily rate is
          never rounded to money places before the multiplication.

    Example:
        3500 WEEKLY, voluntary 2%, completion 90% gives daily rate 500.0000,
        amount 450.00, employee PF 54.00, voluntary PF 9.00, employer PF
        54.00 and net 387.00.
    """
    config = config or DEFAULT_WAGE_CONFIG

    rate = daily_rate(salary.amount, salary.rate_basis, config)
    comp_rate = completion_rate(completion_percentage, config)
    amount = round_money(rate * comp_rate, config.money_decimal_places)

    employee_pf = percent_of(amount, config.employee_pf_percent, config)
    voluntary_pf = percent_of(amount, to_decimal(salary.voluntary_pf_percent), config)
    employer_pf = percent_of(amount, config.employer_pf_percent, config)
    pf_total = employee_pf + voluntary_pf

    deductions = round_money(to_decimal(other_deductions), config.money_decimal_places)
    net_amount = amount - pf_total - deductions

    return WageBreakdown(
        quantity=Decimal("1"),
        rate=rate,
        amount=amount,
        employee_pf=employee_pf,
        voluntary_pf=voluntary_pf,
        employer_pf=employer_pf,
        pf_total=pf_total,
        other_deductions=deductions,
        net_amount=net_amount,
        completion_rate=comp_rate,
    )
