"""Catalog (medicines) client"""

from typing import Any, Dict, List

from pharmacy_core.domain.exceptions import MalformedPayloadError, RemoteError
from pharmacy_core.domain.models import CatalogItem
from pharmacy_core.infrastructure.clients.base import PharmacyApiClient
from pharmacy_core.infrastructure.clients.payloads import MedicinePayload, parse_many, parse_one


def build_medicine_payload(item: CatalogItem) -> Dict[str, Any]:
    """JSON body for POST /medicines and PUT /medicines/{id}; discount fields are always sent"""
    discount = item.discount
    return {
        "name": item.name,
        "category": item.category,
        "price": float(item.base_price),
        "buyPrice": float(item.buy_price),
        "quantity": item.stock,
        "expiryDate": item.expiry.isoformat() if item.expiry else None,
        "discountActive": discount.active,
        "discountType": discount.kind.value if discount.active and discount.kind else None,
        "discountValue": float(discount.value) if discount.active else 0,
        "discountStart": discount.window_start.isoformat() if discount.active and discount.window_start else None,
        "discountEnd": discount.window_end.isoformat() if discount.active and discount.window_end else None,
    }


class CatalogClient(PharmacyApiClient):
    """Client for the remote medicine catalog"""

    async def fetch_item(self, item_id: str) -> CatalogItem:
        """
        Fetch one medicine with its current price and discount.

        Raises:
            RemoteError: On HTTP failure or an unreadable medicine payload
        """
        data = await self._request("GET", f"/medicines/{item_id}", endpoint="catalog.fetch_item")
        return self._parse_item(data)

    async def list_items(self) -> List[CatalogItem]:
        """
        Raises:
            MalformedPayloadError: When the catalog does not answer with a list
        """
        data = await self._request("GET", "/medicines", endpoint="catalog.list_items")
        return [payload.to_domain() for payload in parse_many(MedicinePayload, data)]

    async def create_item(self, item: CatalogItem) -> CatalogItem:
        """Create a medicine; returns the catalog's copy with its assigned id"""
        data = await self._request(
            "POST", "/medicines", endpoint="catalog.create_item", json=build_medicine_payload(item)
        )
        return self._parse_item(data)

    async def update_item(self, item_id: str, item: CatalogItem) -> CatalogItem:
        data = await self._request(
            "PUT", f"/medicines/{item_id}", endpoint="catalog.update_item", json=build_medicine_payload(item)
        )
        return self._parse_item(data)

    async def delete_item(self, item_id: str) -> None:
        await self._request("DELETE", f"/medicines/{item_id}", endpoint="catalog.delete_item")

    @staticmethod
    def _parse_item(data: Any) -> CatalogItem:
        try:
            return parse_one(MedicinePayload, data).to_domain()
        except MalformedPayloadError as e:
            raise RemoteError(None, f"Invalid medicine data from catalog: {e}") from e
