"""Admin analytics client"""

from typing import List

from pharmacy_core.domain.models import AnalyticsOverview, TopSellingItem
from pharmacy_core.infrastructure.clients.base import PharmacyApiClient
from pharmacy_core.infrastructure.clients.payloads import (
    AnalyticsOverviewPayload,
    TopSellingPayload,
    parse_many,
    parse_one,
)


class AnalyticsClient(PharmacyApiClient):
    """Client for revenue and sales aggregates computed server-side"""

    async def overview(self) -> AnalyticsOverview:
        """
        Raises:
            MalformedPayloadError: When the overview is not an object
        """
        data = await self._request("GET", "/admin/analytics/overview", endpoint="analytics.overview")
        return parse_one(AnalyticsOverviewPayload, data).to_domain()

    async def top_selling(self, limit: int = 5) -> List[TopSellingItem]:
        data = await self._request(
            "GET",
            "/admin/analytics/top-selling",
            endpoint="analytics.top_selling",
            params={"limit": limit},
        )
        return [payload.to_domain() for payload in parse_many(TopSellingPayload, data)]
