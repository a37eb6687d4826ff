"""Unit tests for the customer order workflow"""

import pytest
from dataclasses import replace
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from pharmacy_core.domain.exceptions import (
    AccessDeniedError,
    CartStorageError,
    InvalidStateError,
    RemoteError,
    ValidationError,
)
from pharmacy_core.domain.models import CartLine, OrderStatus
from pharmacy_core.services.orders import OrderWorkflow, build_order_payload
from factories import Session, make_order


@pytest.fixture
def orders_client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def workflow(orders_client, cart, customer, clock) -> OrderWorkflow:
    return OrderWorkflow(orders_client, cart, Session(customer), clock=clock)


def test_build_order_payload(customer):
    """Test the order body carries ids, quantities and the customer snapshot, never prices"""
    lines = [
        CartLine.priced("P1", "Napa", 2, Decimal("20.00"), Decimal("20.00")),
        CartLine.priced("P2", "Seclo", 1, Decimal("100.00"), Decimal("90.00")),
    ]

    payload = build_order_payload(lines, customer, {"customerPhone": "01811111111"})

    assert payload == {
        "userId": "U1",
        "items": [{"medicineId": "P1", "quantity": 2}, {"medicineId": "P2", "quantity": 1}],
        "customerName": "Rahim Uddin",
        "customerPhone": "01811111111",
        "customerEmail": "rahim@example.com",
    }


async def test_checkout_creates_order_and_clears_cart(workflow, orders_client, cart):
    """Test a successful checkout empties the ordered lines and reports the server total"""
    await cart.add_item("P1", 2)
    await cart.add_item("P2", 1)
    orders_client.create.return_value = make_order("1001", quantity=2, unit_price="65.00")

    result = await workflow.create_order_from_cart()

    assert result.order.id == "1001"
    assert result.amount_due == Decimal("130.00")
    assert result.uncleared_product_ids == []
    assert cart.get_lines() == []
    sent = orders_client.create.await_args.args[0]
    assert [item["medicineId"] for item in sent["items"]] == ["P1", "P2"]


async def test_checkout_falls_back_to_cart_total(workflow, orders_client, cart):
    """Test a zero server total is replaced by the cart's grand total"""
    await cart.add_item("P2", 2)
    orders_client.create.return_value = replace(make_order("1002"), total_amount=Decimal("0"))

    result = await workflow.create_order_from_cart()

    assert result.amount_due == Decimal("180.00")


async def test_checkout_requires_login(orders_client, cart, clock):
    workflow = OrderWorkflow(orders_client, cart, Session(None), clock=clock)
    await cart.add_item("P1")

    with pytest.raises(AccessDeniedError):
        await workflow.create_order_from_cart()

    orders_client.create.assert_not_awaited()


async def test_checkout_rejects_empty_cart(workflow, orders_client):
    with pytest.raises(ValidationError):
        await workflow.create_order_from_cart()

    orders_client.create.assert_not_awaited()


async def test_checkout_failure_keeps_cart(workflow, orders_client, cart):
    """Test a rejected order leaves every line in the cart"""
    await cart.add_item("P1", 3)
    orders_client.create.side_effect = RemoteError(500, "order service down")

    with pytest.raises(RemoteError):
        await workflow.create_order_from_cart()

    assert cart.item_count() == 3


async def test_checkout_reports_lines_left_in_cart(workflow, orders_client, cart, cart_storage):
    """Test lines that fail to clear are reported without failing the checkout"""
    await cart.add_item("P1")
    orders_client.create.return_value = make_order("1003")

    with patch.object(cart_storage, "delete_line", side_effect=CartStorageError("locked")):
        result = await workflow.create_order_from_cart()

    assert result.order.id == "1003"
    assert result.uncleared_product_ids == ["P1"]


async def test_checkout_keeps_units_added_while_order_is_in_flight(workflow, orders_client, cart):
    """Test only the ordered quantity leaves the cart when the shopper adds more during checkout"""
    await cart.add_item("P1", 3)

    async def place_order(body):
        await cart.add_item("P1", 2)
        await cart.add_item("P2", 1)
        return make_order("1004")

    orders_client.create.side_effect = place_order

    result = await workflow.create_order_from_cart()

    assert result.uncleared_product_ids == []
    assert orders_client.create.call_args.args[0]["items"] == [{"medicineId": "P1", "quantity": 3}]
    assert [(line.product_id, line.quantity) for line in cart.get_lines()] == [("P1", 2), ("P2", 1)]


async def test_checkout_without_order_id_is_an_error(workflow, orders_client, cart):
    await cart.add_item("P1")
    orders_client.create.return_value = replace(make_order(), id="")

    with pytest.raises(RemoteError):
        await workflow.create_order_from_cart()

    assert cart.item_count() == 1


async def test_request_cancel_with_preset(workflow, orders_client):
    """Test the composed reason is sent and the restore target kept when the server omits it"""
    order = make_order("O1", OrderStatus.PAID)
    orders_client.request_cancel.return_value = replace(
        order, status=OrderStatus.CANCEL_REQUESTED, cancel_reason="Delivery is too late - two weeks"
    )

    updated = await workflow.request_cancel(order, preset="Delivery is too late", detail="two weeks")

    orders_client.request_cancel.assert_awaited_once_with("O1", "U1", "Delivery is too late - two weeks")
    assert updated.status is OrderStatus.CANCEL_REQUESTED
    assert updated.pre_cancel_status is OrderStatus.PAID


async def test_request_cancel_invalid_state_never_calls_server(workflow, orders_client):
    with pytest.raises(InvalidStateError):
        await workflow.request_cancel(make_order(status=OrderStatus.DELIVERED), reason="Ordered by mistake")

    orders_client.request_cancel.assert_not_awaited()


async def test_request_cancel_short_reason_never_calls_server(workflow, orders_client):
    with pytest.raises(ValidationError):
        await workflow.request_cancel(make_order(), reason="no")

    orders_client.request_cancel.assert_not_awaited()


async def test_history_uses_session_user(workflow, orders_client):
    orders_client.list_mine.return_value = [make_order("O1")]

    orders = await workflow.list_my_orders()

    orders_client.list_mine.assert_awaited_once_with("U1")
    assert [o.id for o in orders] == ["O1"]


async def test_get_order_requires_id(workflow):
    with pytest.raises(ValidationError):
        await workflow.get_order("")
