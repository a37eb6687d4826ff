"""Customer order workflow: checkout from the cart, history, cancel requests"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from pharmacy_core.domain import orders as lifecycle
from pharmacy_core.domain.cart import CartStore
from pharmacy_core.domain.exceptions import AccessDeniedError, RemoteError, ValidationError
from pharmacy_core.domain.models import CartLine, CheckoutResult, Order, SessionUser
from pharmacy_core.infrastructure.clients.orders import OrdersClient
from pharmacy_core.infrastructure.observability.logging import log_order_transition
from pharmacy_core.infrastructure.observability.metrics import order_transition_counter
from pharmacy_core.utils.date_utils import Clock, utc_now

SessionProvider = Callable[[], Optional[SessionUser]]


def build_order_payload(
    lines: List[CartLine],
    user: SessionUser,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Order creation body: user id, line items, and a customer snapshot.

    Prices are not sent; the order service snapshots them server-side.
    """
    extra = overrides or {}
    return {
        "userId": user.id,
        "items": [{"medicineId": line.product_id, "quantity": line.quantity} for line in lines],
        "customerName": extra.get("customerName", user.name),
        "customerPhone": extra.get("customerPhone", user.phone),
        "customerEmail": extra.get("customerEmail", user.email),
    }


class OrderWorkflow:
    """Orchestrates the customer side of the order lifecycle"""

    def __init__(
        self,
        orders: OrdersClient,
        cart: CartStore,
        session: SessionProvider,
        clock: Clock = utc_now,
    ):
        self.orders = orders
        self.cart = cart
        self.session = session
        self.clock = clock

    def _require_user(self) -> SessionUser:
        user = self.session()
        if user is None or not user.id:
            raise AccessDeniedError("You must be logged in to continue")
        return user

    async def create_order_from_cart(self, overrides: Optional[Dict[str, Any]] = None) -> CheckoutResult:
        """
        Turn the current cart into a PENDING order.

        Flow:
        1. Check the session and snapshot the cart
        2. POST the order; the server snapshots lines and total
        3. Take the ordered quantities out of the cart (partial failures are reported, not raised)
        4. Amount due: server total when positive, else the cart grand total

        Raises:
            AccessDeniedError: not logged in
            ValidationError: cart is empty
            RemoteError: the order service rejected or failed the request
        """
        user = self._require_user()
        lines = self.cart.get_lines()
        if not lines:
            raise ValidationError("Cart is empty")
        totals = self.cart.get_totals()

        order = await self.orders.create(build_order_payload(lines, user, overrides))
        if not order.id:
            raise RemoteError(None, "Order could not be created")

        uncleared = await self.cart.release({line.product_id: line.quantity for line in lines})
        if uncleared:
            logging.warning("Cart not fully cleared after order", extra={"order_id": order.id, "uncleared": uncleared})

        order_transition_counter.labels(event="create").inc()
        log_order_transition(order.id, "create", None, order.status.value, user.id)

        amount_due = order.total_amount if order.total_amount > 0 else totals.grand_total
        return CheckoutResult(order=order, amount_due=amount_due, uncleared_product_ids=uncleared)

    async def list_my_orders(self) -> List[Order]:
        user = self._require_user()
        return await self.orders.list_mine(user.id)

    async def get_order(self, order_id: str) -> Order:
        self._require_user()
        if not order_id:
            raise ValidationError("order id is required")
        return await self.orders.get(order_id)

    async def request_cancel(
        self,
        order: Order,
        reason: Optional[str] = None,
        preset: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> Order:
        """
        Ask the admins to cancel a PENDING or PAID order.

        Pass either a ready `reason`, or a `preset` label with optional `detail`.

        Raises:
            AccessDeniedError: not logged in
            ValidationError: reason too short
            InvalidStateError: order is not PENDING or PAID
            RemoteError: the order service failed the request
        """
        user = self._require_user()
        text = reason if preset is None else lifecycle.compose_cancel_reason(preset, detail)
        local = lifecycle.request_cancel(order, text, self.clock())

        updated = await self.orders.request_cancel(order.id, user.id, local.cancel_reason)
        if updated.pre_cancel_status is None and updated.status is local.status:
            # Keep the restore target when the server does not echo it
            updated = replace(updated, pre_cancel_status=local.pre_cancel_status)

        order_transition_counter.labels(event="request_cancel").inc()
        log_order_transition(order.id, "request_cancel", order.status.value, updated.status.value, user.id)
        return updated
