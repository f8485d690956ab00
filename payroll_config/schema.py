"""
Configuration schema (``payroll_config.schema``).

Frozen dataclasses describing the tunable constants of wage calculation
and document handling.  Constructed by ``payroll_config.loader`` from YAML
and validated on construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

_HUNDRED = Decimal("100")

SALARY_AS_OF_CURRENT = "current"
SALARY_AS_OF_ASSIGNMENT_DATE = "assignment_date"
SALARY_AS_OF_CHOICES = (SALARY_AS_OF_CURRENT, SALARY_AS_OF_ASSIGNMENT_DATE)


@dataclass(frozen=True)
class WageConfig:
    """Constants consumed by the wage calculator and payment service.

    Contract: frozen; percentages are expressed in percent (12 means 12%).
    Guarantees: percentages lie in 0..100, divisors and limits are positive,
    currency is a 3-letter code.
    ``salary_as_of`` picks the salary a line item is priced with: the one
    in force today (``current``) or the one in force on the work record's
    assignment date (``assignment_date``).
    Non-goals: does not carry per-worker overrides; voluntary PF lives on the
    salary record.
    """

    employee_pf_percent: Decimal = Decimal("12")
    employer_pf_percent: Decimal = Decimal("12")
    weekly_divisor: int = 7
    monthly_divisor: int = 30
    default_currency: str = "INR"
    max_document_bytes: int = 10 * 1024 * 1024
    money_decimal_places: int = 2
    rate_decimal_places: int = 4
    salary_as_of: str = SALARY_AS_OF_CURRENT
    version: str = "builtin"
    checksum: str | None = None

    def __post_init__(self) -> None:
        for name in ("employee_pf_percent", "employer_pf_percent"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                raise ValueError(f"{name} must be a Decimal, got {type(value).__name__}")
            if value < 0 or value > _HUNDRED:
                raise ValueError(f"{name} must be between 0 and 100, got {value}")
        if self.weekly_divisor <= 0 or self.monthly_divisor <= 0:
            raise ValueError("rate divisors must be positive")
        if self.max_document_bytes <= 0:
            raise ValueError("max_document_bytes must be positive")
        if self.money_decimal_places < 0 or self.rate_decimal_places < 0:
            raise ValueError("decimal places cannot be negative")
        if self.salary_as_of not in SALARY_AS_OF_CHOICES:
            raise ValueError(
                f"salary_as_of must be one of {SALARY_AS_OF_CHOICES}, got {self.salary_as_of!r}"
            )
        if len(self.default_currency) != 3 or not self.default_currency.isalpha():
            raise ValueError(
                f"default_currency must be a 3-letter code, got {self.default_currency!r}"
            )


DEFAULT_WAGE_CONFIG = WageConfig()
