"""
Module: payroll_kernel.db.types
Responsibility: Decimal coercion and the rounding helper used for wage and PF
    amounts.  Centralizes precision so that every calculation uses identical
    definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for wage values.
    - No floats anywhere in the payroll kernel.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    Args:
        value: The value to round.
        decimal_places: Number of decimal places (default 2).
        rounding: Rounding mode (default ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=rounding)


def to_decimal(value: Decimal | int | str | None) -> Decimal:
    """Coerce a numeric input to Decimal, treating None as zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("float values are not accepted for monetary amounts")
    return Decimal(str(value))
