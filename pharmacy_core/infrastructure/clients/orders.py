"""Order service client"""

from typing import Any, Dict, List

from pharmacy_core.domain.exceptions import MalformedPayloadError, RemoteError
from pharmacy_core.domain.models import Order, OrderStatus
from pharmacy_core.infrastructure.clients.base import PharmacyApiClient
from pharmacy_core.infrastructure.clients.payloads import OrderPayload, parse_many, parse_one


class OrdersClient(PharmacyApiClient):
    """Client for the remote order service (customer and admin endpoints)"""

    def _order(self, data: Any, endpoint: str) -> Order:
        try:
            return parse_one(OrderPayload, data).to_domain()
        except MalformedPayloadError as e:
            raise RemoteError(None, f"Invalid order data from {endpoint}: {e}") from e

    # Customer

    async def create(self, payload: Dict[str, Any]) -> Order:
        data = await self._request("POST", "/orders", endpoint="orders.create", json=payload)
        return self._order(data, "orders.create")

    async def get(self, order_id: str) -> Order:
        data = await self._request("GET", f"/orders/{order_id}", endpoint="orders.get")
        return self._order(data, "orders.get")

    async def list_mine(self, user_id: str) -> List[Order]:
        data = await self._request("GET", f"/orders/history/{user_id}", endpoint="orders.list_mine")
        return [payload.to_domain() for payload in parse_many(OrderPayload, data)]

    async def request_cancel(self, order_id: str, user_id: str, reason: str) -> Order:
        data = await self._request(
            "POST",
            f"/orders/{order_id}/cancel-request",
            endpoint="orders.request_cancel",
            json={"userId": user_id, "reason": reason},
        )
        return self._order(data, "orders.request_cancel")

    # Admin

    async def list_all(self) -> List[Order]:
        """
        Raises:
            MalformedPayloadError: When the response is not a list
        """
        data = await self._request("GET", "/orders", endpoint="orders.list_all")
        return [payload.to_domain() for payload in parse_many(OrderPayload, data)]

    async def list_cancel_requests(self) -> List[Order]:
        data = await self._request("GET", "/orders/cancel-requests", endpoint="orders.list_cancel_requests")
        return [payload.to_domain() for payload in parse_many(OrderPayload, data)]

    async def set_status(self, order_id: str, status: OrderStatus) -> Order:
        data = await self._request(
            "PATCH",
            f"/orders/{order_id}/status",
            endpoint="orders.set_status",
            params={"status": status.value},
        )
        return self._order(data, "orders.set_status")

    async def approve_cancel(self, order_id: str, admin_id: str) -> Order:
        data = await self._request(
            "PATCH",
            f"/orders/{order_id}/cancel/approve",
            endpoint="orders.approve_cancel",
            params={"adminId": admin_id},
        )
        return self._order(data, "orders.approve_cancel")

    async def reject_cancel(self, order_id: str, admin_id: str) -> Order:
        data = await self._request(
            "PATCH",
            f"/orders/{order_id}/cancel/reject",
            endpoint="orders.reject_cancel",
            params={"adminId": admin_id},
        )
        return self._order(data, "orders.reject_cancel")
