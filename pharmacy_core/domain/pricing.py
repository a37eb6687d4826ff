"""Discount-aware pricing engine - pure functions, no I/O"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from pharmacy_core.domain.models import DiscountDescriptor, DiscountKind
from pharmacy_core.utils.date_utils import calendar_date
from pharmacy_core.utils.money import ZERO, as_decimal, round2


def is_discount_effective(discount: Optional[DiscountDescriptor], as_of: Union[date, datetime]) -> bool:
    """
    A discount applies iff it is active, has a positive value, and the
    calendar date of `as_of` lies inside [window_start, window_end].

    Absent bounds are open on that side; time-of-day is ignored.
    """
    if discount is None or not discount.active:
        return False
    if as_decimal(discount.value) <= 0:
        return False

    today = calendar_date(as_of)
    if discount.window_start is not None and today < calendar_date(discount.window_start):
        return False
    if discount.window_end is not None and today > calendar_date(discount.window_end):
        return False
    return True


def discount_amount(base_price: Decimal, discount: DiscountDescriptor) -> Decimal:
    """Unclamped, unrounded amount taken off `base_price`"""
    value = as_decimal(discount.value)
    if discount.kind is DiscountKind.PERCENT:
        return base_price * value / 100
    if discount.kind is DiscountKind.FLAT:
        return value
    return ZERO


def compute_final_price(
    base_price: Decimal,
    discount: Optional[DiscountDescriptor],
    as_of: Union[date, datetime],
) -> Decimal:
    """
    Final unit price after the discount effective at `as_of`.

    Rules:
    - Not effective: base price unchanged
    - PERCENT: base * value / 100 off
    - FLAT: value off
    - Amount clamped to [0, base] so the price never goes negative
    - Result rounded half-up to 2 places

    Example:
        100.00 with 10% -> 90.00
        50.00 with 20.00 flat -> 30.00
    """
    base = as_decimal(base_price)
    if not is_discount_effective(discount, as_of):
        return base

    amount = discount_amount(base, discount)
    amount = max(ZERO, min(amount, base))

    return round2(base - amount)
