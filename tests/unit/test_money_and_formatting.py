"""Unit tests for money parsing, date helpers and display formatting"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from pharmacy_core.domain.exceptions import ValidationError
from pharmacy_core.domain.models import DiscountDescriptor, DiscountKind
from pharmacy_core.utils.date_utils import calendar_date, parse_timestamp
from pharmacy_core.utils.formatting import discount_badge, format_amount, format_money
from pharmacy_core.utils.money import as_decimal, round2, to_money
from factories import TODAY


def test_round2_is_half_up():
    """Test 2.675 rounds up to 2.68 (no float artifacts)"""
    assert round2("2.675") == Decimal("2.68")
    assert round2(2.675) == Decimal("2.68")
    assert round2("2.665") == Decimal("2.67")
    assert round2(Decimal("1.004")) == Decimal("1.00")


def test_as_decimal_avoids_float_noise():
    assert as_decimal(0.1) == Decimal("0.1")
    assert as_decimal(3) == Decimal("3")


def test_to_money_accepts_numbers_and_strings():
    assert to_money("19.999") == Decimal("20.00")
    assert to_money(5) == Decimal("5.00")


@pytest.mark.parametrize("bad", ["abc", None, True, "-1", "NaN", "Infinity"])
def test_to_money_rejects_bad_input(bad):
    """Test non-numeric, non-finite and negative money is a ValidationError"""
    with pytest.raises(ValidationError):
        to_money(bad, field="price")


def test_calendar_date_variants():
    """Test dates, datetimes and ISO strings reduce to a calendar date"""
    assert calendar_date(TODAY) == TODAY
    assert calendar_date(datetime(2026, 10, 19, 23, 0, tzinfo=timezone.utc)) == TODAY
    assert calendar_date("2026-10-19T08:30:00Z") == TODAY
    assert calendar_date("") is None
    assert calendar_date(None) is None


def test_parse_timestamp_defaults_to_utc():
    """Test naive server timestamps are taken as UTC and Z suffixes parse"""
    naive = parse_timestamp("2026-10-19T09:00:00")
    zulu = parse_timestamp("2026-10-19T09:00:00Z")

    assert naive == zulu
    assert naive.tzinfo is not None
    assert parse_timestamp("") is None


def test_format_amount_and_money():
    """Test thousands separators and the currency symbol"""
    assert format_amount(Decimal("1234.5")) == "1,234.50"
    assert format_money(Decimal("90"), symbol="৳") == "৳90.00"
    assert format_money(Decimal("0.5"), symbol="$") == "$0.50"


def test_discount_badges():
    """Test badge text for percent, flat and non-effective discounts"""
    percent = DiscountDescriptor(active=True, kind=DiscountKind.PERCENT, value=Decimal("10.00"))
    flat = DiscountDescriptor(active=True, kind=DiscountKind.FLAT, value=Decimal("12.50"))
    expired = DiscountDescriptor(
        active=True, kind=DiscountKind.PERCENT, value=Decimal("10"), window_end=TODAY - timedelta(days=1)
    )

    assert discount_badge(percent, TODAY) == "10% OFF"
    assert discount_badge(flat, TODAY, symbol="৳") == "৳12.5 OFF"
    assert discount_badge(expired, TODAY) == ""
    assert discount_badge(None, TODAY) == ""
