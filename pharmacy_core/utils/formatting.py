"""Display helpers for prices and discount badges"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from pharmacy_core.config import settings
from pharmacy_core.domain.models import DiscountDescriptor, DiscountKind
from pharmacy_core.domain.pricing import is_discount_effective
from pharmacy_core.utils.money import as_decimal, round2


def format_amount(value: Decimal) -> str:
    """
    Format money with thousands separators and 2 decimals.
    Example: Decimal("1234.5") -> "1,234.50"
    """
    return f"{round2(value):,.2f}"


def format_money(value: Decimal, symbol: Optional[str] = None) -> str:
    return f"{symbol or settings.currency_symbol}{format_amount(value)}"


def _plain_number(value: Decimal) -> str:
    # 10.00 -> "10", 12.50 -> "12.5"
    return f"{as_decimal(value).normalize():f}"


def discount_badge(
    discount: Optional[DiscountDescriptor],
    as_of: Union[date, datetime],
    symbol: Optional[str] = None,
) -> str:
    """Badge text for a product card: "10% OFF", "৳20 OFF", or "" when nothing applies"""
    if not is_discount_effective(discount, as_of):
        return ""
    if discount.kind is DiscountKind.PERCENT:
        return f"{_plain_number(discount.value)}% OFF"
    if discount.kind is DiscountKind.FLAT:
        return f"{symbol or settings.currency_symbol}{_plain_number(discount.value)} OFF"
    return ""
