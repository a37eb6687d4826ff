"""Back-office views: five cached collections and the admin mutations on them"""

import logging
from datetime import date, timedelta
from typing import Any, Callable, List, Optional

from pharmacy_core.config import settings
from pharmacy_core.domain import orders as lifecycle
from pharmacy_core.domain.cache import CachedCollection
from pharmacy_core.domain.exceptions import AccessDeniedError, InvalidStateError, ValidationError
from pharmacy_core.domain.models import (
    NO_DISCOUNT,
    AnalyticsOverview,
    CacheEntry,
    CatalogItem,
    DiscountDescriptor,
    Order,
    OrderStatus,
    SessionUser,
    TopSellingItem,
    User,
)
from pharmacy_core.domain.reports import ProfitReport, build_profit_report
from pharmacy_core.infrastructure.clients.analytics import AnalyticsClient
from pharmacy_core.infrastructure.clients.catalog import CatalogClient
from pharmacy_core.infrastructure.clients.orders import OrdersClient
from pharmacy_core.infrastructure.clients.users import UsersClient
from pharmacy_core.infrastructure.observability.logging import log_order_transition
from pharmacy_core.infrastructure.observability.metrics import order_transition_counter
from pharmacy_core.utils.date_utils import Clock, utc_now

SessionProvider = Callable[[], Optional[SessionUser]]


def _replace_order(updated: Order) -> Callable[[List[Order]], List[Order]]:
    return lambda orders: [updated if o.id == updated.id else o for o in orders]


def _reconcile_order(orders: List[Order], confirmed: Order) -> List[Order]:
    return _replace_order(confirmed)(orders)


def _unchanged(orders: List[Order]) -> List[Order]:
    return orders


def _without(item_id: str) -> Callable[[list], list]:
    return lambda items: [item for item in items if item.id != item_id]


class DashboardCache:
    """
    Per-process cache service for the back-office, one entry per entity.

    Built once with its clients and clock, then passed to whoever renders
    the admin views.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        orders: OrdersClient,
        users: UsersClient,
        analytics: AnalyticsClient,
        clock: Clock = utc_now,
        ttl: timedelta | None = None,
    ):
        ttl = ttl if ttl is not None else timedelta(seconds=settings.cache_ttl_seconds)
        self.inventory: CachedCollection[List[CatalogItem]] = CachedCollection(
            "inventory", catalog.list_items, list, ttl, clock
        )
        self.orders: CachedCollection[List[Order]] = CachedCollection("orders", orders.list_all, list, ttl, clock)
        self.cancel_requests: CachedCollection[List[Order]] = CachedCollection(
            "cancel_requests", orders.list_cancel_requests, list, ttl, clock
        )
        self.users: CachedCollection[List[User]] = CachedCollection("users", users.list_users, list, ttl, clock)
        self.analytics: CachedCollection[AnalyticsOverview] = CachedCollection(
            "analytics", analytics.overview, AnalyticsOverview, ttl, clock
        )

    def entities(self) -> List[CachedCollection]:
        return [self.inventory, self.orders, self.cancel_requests, self.users, self.analytics]

    def invalidate_all(self) -> None:
        for entity in self.entities():
            entity.invalidate()


class AdminDashboard:
    """Admin workflow over DashboardCache: reads, deletions, status and cancel decisions"""

    def __init__(
        self,
        cache: DashboardCache,
        catalog: CatalogClient,
        orders: OrdersClient,
        users: UsersClient,
        analytics: AnalyticsClient,
        session: SessionProvider,
        clock: Clock = utc_now,
    ):
        self.cache = cache
        self.catalog = catalog
        self.orders = orders
        self.users = users
        self.analytics = analytics
        self.session = session
        self.clock = clock

    def _require_admin(self) -> SessionUser:
        user = self.session()
        if user is None or not user.is_admin:
            raise AccessDeniedError("Admin privileges required")
        return user

    # Views

    async def inventory(self, force: bool = False) -> CacheEntry[List[CatalogItem]]:
        self._require_admin()
        return await self.cache.inventory.get(force)

    async def all_orders(self, force: bool = False) -> CacheEntry[List[Order]]:
        self._require_admin()
        return await self.cache.orders.get(force)

    async def cancel_requests(self, force: bool = False) -> CacheEntry[List[Order]]:
        self._require_admin()
        return await self.cache.cancel_requests.get(force)

    async def all_users(self, force: bool = False) -> CacheEntry[List[User]]:
        self._require_admin()
        return await self.cache.users.get(force)

    async def overview(self, force: bool = False) -> CacheEntry[AnalyticsOverview]:
        self._require_admin()
        return await self.cache.analytics.get(force)

    async def top_selling(self, limit: int = 5) -> List[TopSellingItem]:
        self._require_admin()
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        return await self.analytics.top_selling(limit)

    async def profit_report(self, only_sold: bool = True) -> ProfitReport:
        self._require_admin()
        orders = await self.cache.orders.get()
        inventory = await self.cache.inventory.get()
        return build_profit_report(orders.data, inventory.data, only_sold=only_sold)

    # Mutations

    async def save_medicine(
        self,
        name: str,
        category: str,
        price: Any,
        buy_price: Any,
        stock: Any,
        expiry: Optional[date],
        discount: DiscountDescriptor = NO_DISCOUNT,
        medicine_id: Optional[str] = None,
    ) -> CatalogItem:
        """
        Create a medicine, or update `medicine_id` when given.

        Input is validated before any request; the inventory view is
        invalidated once the catalog confirms the write.

        Raises:
            ValidationError: see CatalogItem.create
            RemoteError: the catalog rejected or failed the request
        """
        admin = self._require_admin()
        item = CatalogItem.create(name, category, price, buy_price, stock, expiry, discount, id=medicine_id or "")
        if medicine_id:
            saved = await self.catalog.update_item(medicine_id, item)
        else:
            saved = await self.catalog.create_item(item)
        self.cache.inventory.invalidate()
        logging.info(
            "Medicine saved",
            extra={"medicine_id": saved.id, "created": not medicine_id, "actor_id": admin.id},
        )
        return saved

    async def delete_medicine(self, item: CatalogItem) -> None:
        """Drop the medicine from the inventory view, then delete it remotely"""
        self._require_admin()
        if not item.id:
            raise ValidationError("medicine id is required")
        await self.cache.inventory.mutate_optimistic(_without(item.id), lambda: self.catalog.delete_item(item.id))
        # Server-side deletes can cascade; reload on next view
        self.cache.inventory.invalidate()

    async def delete_user(self, user: User) -> None:
        self._require_admin()
        if not user.id:
            raise ValidationError("user id is required")
        await self.cache.users.mutate_optimistic(_without(user.id), lambda: self.users.delete_user(user.id))

    async def change_order_status(self, order: Order, status: OrderStatus) -> Order:
        """
        Admin override of an order's status, bypassing the transition table.

        Raises:
            ValidationError: target belongs to the cancel workflow
            InvalidStateError: order is CANCELLED
        """
        admin = self._require_admin()
        updated = lifecycle.force_set_status(order, status)
        confirmed = await self.cache.orders.mutate_optimistic(
            _replace_order(updated),
            lambda: self.orders.set_status(order.id, status),
            reconcile=_reconcile_order,
        )
        order_transition_counter.labels(event="force_status").inc()
        log_order_transition(order.id, "force_status", order.status.value, confirmed.status.value, admin.id)
        return confirmed

    async def approve_cancel(self, order: Order) -> Order:
        """
        CANCEL_REQUESTED -> CANCELLED.

        The order leaves the cancel-requests view and is updated in the
        orders view before the server answers; both roll back on failure.
        On success inventory (restocked server-side) and analytics are invalidated.
        """
        admin = self._require_admin()
        cancelled = lifecycle.approve_cancel(order, self.clock())
        confirmed = await self._decide_cancel(
            order,
            _replace_order(cancelled),
            lambda: self.orders.approve_cancel(order.id, admin.id),
        )
        self.cache.inventory.invalidate()
        self.cache.analytics.invalidate()

        order_transition_counter.labels(event="approve_cancel").inc()
        log_order_transition(order.id, "approve_cancel", order.status.value, confirmed.status.value, admin.id)
        return confirmed

    async def reject_cancel(self, order: Order) -> Order:
        """
        CANCEL_REQUESTED -> the order's pre-cancel status.

        When the pre-cancel status is unknown locally, the orders view waits
        for the server's answer instead of guessing.
        """
        admin = self._require_admin()
        if order.status is not OrderStatus.CANCEL_REQUESTED:
            raise InvalidStateError(f"Order {order.id} has no pending cancel request ({order.status.value})")
        if order.pre_cancel_status is not None:
            update_orders = _replace_order(lifecycle.reject_cancel(order))
        else:
            update_orders = _unchanged
        confirmed = await self._decide_cancel(
            order,
            update_orders,
            lambda: self.orders.reject_cancel(order.id, admin.id),
        )
        self.cache.analytics.invalidate()

        order_transition_counter.labels(event="reject_cancel").inc()
        log_order_transition(order.id, "reject_cancel", order.status.value, confirmed.status.value, admin.id)
        return confirmed

    async def _decide_cancel(self, order: Order, update_orders, commit) -> Order:
        """Optimistically apply a cancel decision to both the orders and cancel-requests views"""
        pending = self.cache.orders.begin(update_orders)
        try:
            confirmed = await self.cache.cancel_requests.mutate_optimistic(_without(order.id), commit)
        except Exception as e:
            self.cache.orders.rollback(pending, e)
            raise
        self.cache.orders.settle(pending, confirmed, _reconcile_order)
        return confirmed
