"""Unit tests for the cart store"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import patch

from pharmacy_core.domain.cart import CartStore, normalize_quantity, summarize
from pharmacy_core.domain.exceptions import CartStorageError, CatalogLookupError
from factories import make_item


async def test_repeat_add_merges_into_one_line(cart):
    """Test adding P1 x2 then P1 x3 yields one line of 5 at 100.00"""
    await cart.add_item("P1", 2)
    line = await cart.add_item("P1", 3)

    lines = cart.get_lines()
    assert len(lines) == 1
    assert line.quantity == 5
    assert lines[0].quantity == 5
    assert lines[0].line_total == Decimal("100.00")
    assert lines[0].line_total == lines[0].final_unit_price * lines[0].quantity


async def test_add_prices_with_effective_discount(cart):
    """Test P2 (100.00, 10% off) is stored at 90.00 with its base price kept"""
    line = await cart.add_item("P2")

    assert line.base_unit_price == Decimal("100.00")
    assert line.final_unit_price == Decimal("90.00")
    assert line.line_total == Decimal("90.00")
    assert line.discount.active


async def test_numeric_product_ids_are_keyed_as_strings(cart, catalog):
    """Test ids are normalized so 1 and "1" address the same line"""
    catalog.items["1"] = make_item("1", "10.00")

    await cart.add_item(1)
    await cart.add_item("1")

    assert [(line.product_id, line.quantity) for line in cart.get_lines()] == [("1", 2)]


async def test_lines_keep_the_requested_id_when_the_catalog_canonicalizes_it(cart, catalog):
    """Test a catalog answering "01" with id "1" still merges, re-prices and removes the "01" line"""
    catalog.items["01"] = make_item("1", "10.00")

    await cart.add_item("01", 2)
    line = await cart.add_item("01", 3)

    assert line.product_id == "01"
    assert [(row.product_id, row.quantity) for row in cart.get_lines()] == [("01", 5)]

    catalog.items["01"] = make_item("1", "12.00")
    repriced = await cart.reprice()
    assert [(row.product_id, row.final_unit_price) for row in repriced] == [("01", Decimal("12.00"))]
    assert len(cart.get_lines()) == 1

    await cart.remove_item("01")
    assert cart.get_lines() == []


async def test_unknown_product_raises_catalog_lookup_error(cart):
    """Test a first add of an unresolvable product aborts without touching the cart"""
    await cart.add_item("P1")

    with pytest.raises(CatalogLookupError):
        await cart.add_item("P404")

    assert [line.product_id for line in cart.get_lines()] == ["P1"]


async def test_remove_is_idempotent(cart):
    """Test removing twice is the same as removing once"""
    await cart.add_item("P1", 2)
    await cart.add_item("P2", 1)

    await cart.remove_item("P1")
    after_first = cart.get_lines()
    await cart.remove_item("P1")

    assert cart.get_lines() == after_first
    assert [line.product_id for line in after_first] == ["P2"]


async def test_update_quantity(cart):
    """Test setting a quantity recomputes the line total; unknown ids return None"""
    await cart.add_item("P2", 1)

    line = await cart.update_quantity("P2", 3)

    assert line.quantity == 3
    assert line.line_total == Decimal("270.00")
    assert await cart.update_quantity("P404", 2) is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        (3, 3),
        ("4", 4),
        (2.7, 2),
        (0.5, 1),
        (0, 1),
        (-3, 1),
        ("abc", 1),
        (None, 1),
        (float("nan"), 1),
        (True, 1),
        (2**63, 999),
        (10**400, 999),
        ("9" * 30, 999),
        (1e300, 999),
    ],
)
def test_normalize_quantity(raw, expected):
    """Test quantities are coerced to whole numbers between 1 and the configured cap"""
    assert normalize_quantity(raw) == expected


def test_normalize_quantity_with_explicit_cap():
    assert normalize_quantity(50, maximum=10) == 10
    assert normalize_quantity(10**400, maximum=10) == 10
    assert normalize_quantity(7, maximum=10) == 7


async def test_huge_quantities_are_capped(catalog, cart_storage, clock):
    """Test adds, merges and updates never store more than max_quantity"""
    cart = CartStore(catalog, cart_storage, clock=clock, max_quantity=10)

    first = await cart.add_item("P1", 2**63)
    assert first.quantity == 10

    await cart.update_quantity("P1", 4)
    merged = await cart.add_item("P1", 8)
    assert merged.quantity == 10
    assert merged.line_total == Decimal("200.00")

    updated = await cart.update_quantity("P1", 10**400)
    assert updated.quantity == 10
    assert [line.quantity for line in cart.get_lines()] == [10]


async def test_update_quantity_clamps_to_one(cart):
    await cart.add_item("P1", 5)

    line = await cart.update_quantity("P1", 0)

    assert line.quantity == 1
    assert line.line_total == Decimal("20.00")


async def test_totals(cart):
    """Test subtotal, grand total, savings and item count"""
    await cart.add_item("P1", 2)
    await cart.add_item("P2", 3)

    totals = cart.get_totals()

    assert totals.subtotal == Decimal("340.00")
    assert totals.grand_total == Decimal("310.00")
    assert totals.saved == Decimal("30.00")
    assert totals.item_count == 5
    assert cart.item_count() == 5


def test_summarize_empty_cart():
    totals = summarize([])

    assert totals.subtotal == Decimal("0.00")
    assert totals.grand_total == Decimal("0.00")
    assert totals.item_count == 0


async def test_repeat_add_keeps_snapshot_price(cart, catalog):
    """Test a catalog price change does not re-price an existing line by default"""
    await cart.add_item("P1", 1)
    catalog.items["P1"] = make_item("P1", "25.00")

    line = await cart.add_item("P1", 1)

    assert line.final_unit_price == Decimal("20.00")
    assert line.line_total == Decimal("40.00")


async def test_reprice_picks_up_catalog_changes(cart, catalog):
    """Test reprice() refreshes unit prices and keeps lines whose lookup fails"""
    await cart.add_item("P1", 2)
    await cart.add_item("P2", 1)
    catalog.items["P1"] = make_item("P1", "25.00")
    del catalog.items["P2"]

    lines = await cart.reprice()

    by_id = {line.product_id: line for line in lines}
    assert by_id["P1"].final_unit_price == Decimal("25.00")
    assert by_id["P1"].line_total == Decimal("50.00")
    assert by_id["P2"].final_unit_price == Decimal("90.00")
    assert cart.get_totals().grand_total == Decimal("140.00")


async def test_reprice_on_add_policy(catalog, cart_storage, clock):
    """Test reprice_on_add refreshes the price, falling back to the snapshot on lookup failure"""
    cart = CartStore(catalog, cart_storage, clock=clock, reprice_on_add=True)
    await cart.add_item("P1", 1)
    catalog.items["P1"] = make_item("P1", "25.00")

    repriced = await cart.add_item("P1", 1)
    assert repriced.final_unit_price == Decimal("25.00")
    assert repriced.line_total == Decimal("50.00")

    del catalog.items["P1"]
    kept = await cart.add_item("P1", 1)
    assert kept.quantity == 3
    assert kept.final_unit_price == Decimal("25.00")


async def test_cart_survives_a_new_store(cart, catalog, cart_storage, clock):
    """Test lines written by one store are read back by another on the same storage"""
    await cart.add_item("P2", 2)

    reopened = CartStore(catalog, cart_storage, clock=clock)

    assert reopened.get_lines() == cart.get_lines()
    assert reopened.get_totals().grand_total == Decimal("180.00")


async def test_clear_everything(cart):
    await cart.add_item("P1")
    await cart.add_item("P2")

    assert await cart.clear() == []
    assert cart.get_lines() == []


async def test_clear_only_ordered_ids(cart):
    """Test clearing specific ids leaves lines added by other flows"""
    await cart.add_item("P1")
    await cart.add_item("P2")

    assert await cart.clear(["P1"]) == []
    assert [line.product_id for line in cart.get_lines()] == ["P2"]


async def test_clear_reports_lines_it_could_not_remove(cart, cart_storage):
    """Test a failed bulk clear falls back to per-line deletes and returns what remains"""
    await cart.add_item("P1")
    await cart.add_item("P2")
    delete_line = cart_storage.delete_line

    def flaky_delete(product_id):
        if product_id == "P2":
            raise CartStorageError("row locked")
        delete_line(product_id)

    with patch.object(cart_storage, "delete_all", side_effect=CartStorageError("table locked")), patch.object(
        cart_storage, "delete_line", side_effect=flaky_delete
    ):
        remaining = await cart.clear()

    assert remaining == ["P2"]
    assert [line.product_id for line in cart.get_lines()] == ["P2"]


async def test_concurrent_adds_do_not_lose_updates(cart):
    """Test interleaved adds of the same product all land"""
    await asyncio.gather(*(cart.add_item("P1", 1) for _ in range(10)))

    lines = cart.get_lines()
    assert len(lines) == 1
    assert lines[0].quantity == 10
    assert lines[0].line_total == Decimal("200.00")


async def test_release_takes_out_only_the_given_quantities(cart):
    """Test release subtracts quantities and deletes lines that reach zero"""
    await cart.add_item("P1", 5)
    await cart.add_item("P2", 2)

    failed = await cart.release({"P1": 3, "P2": 2, "P404": 1})

    assert failed == []
    assert [(line.product_id, line.quantity) for line in cart.get_lines()] == [("P1", 2)]
    assert cart.get_lines()[0].line_total == Decimal("40.00")


async def test_release_reports_lines_it_could_not_update(cart, cart_storage):
    await cart.add_item("P1", 1)
    await cart.add_item("P2", 4)

    with patch.object(cart_storage, "save_line", side_effect=CartStorageError("row locked")):
        failed = await cart.release({"P1": 1, "P2": 1})

    assert failed == ["P2"]
    assert [(line.product_id, line.quantity) for line in cart.get_lines()] == [("P2", 4)]
