"""Money helpers: Decimal parsing and half-up rounding"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from pharmacy_core.domain.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def as_decimal(value: Any) -> Decimal:
    """Convert int/float/str to Decimal without float artifacts (0.1 -> '0.1')"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Any) -> Decimal:
    """Round to 2 fractional digits, half-up (2.675 -> 2.68)"""
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value: Any, field: str = "amount") -> Decimal:
    """
    Parse user-supplied money.

    Raises:
        ValidationError: non-numeric, non-finite or negative input
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        amount = as_decimal(value)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} must be a number, got {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite")
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    return round2(amount)
