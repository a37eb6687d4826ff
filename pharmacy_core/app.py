"""Storefront factory: wires clients, cart storage, caches and workflows"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx

from pharmacy_core.config import Settings, settings as default_settings
from pharmacy_core.domain.cart import CartStore
from pharmacy_core.infrastructure.clients.analytics import AnalyticsClient
from pharmacy_core.infrastructure.clients.base import TokenProvider
from pharmacy_core.infrastructure.clients.catalog import CatalogClient
from pharmacy_core.infrastructure.clients.orders import OrdersClient
from pharmacy_core.infrastructure.clients.users import UsersClient
from pharmacy_core.infrastructure.database.repositories import SqlCartRepository
from pharmacy_core.infrastructure.database.session import create_session_factory
from pharmacy_core.infrastructure.observability.logging import setup_logging
from pharmacy_core.services.dashboard import AdminDashboard, DashboardCache, SessionProvider
from pharmacy_core.services.orders import OrderWorkflow
from pharmacy_core.utils.date_utils import Clock, utc_now


@dataclass
class Storefront:
    """Everything the page layer talks to, built once per process"""

    catalog: CatalogClient
    cart: CartStore
    orders: OrderWorkflow
    dashboard: AdminDashboard
    cache: DashboardCache


def create_storefront(
    session: SessionProvider,
    token_provider: Optional[TokenProvider] = None,
    admin_token_provider: Optional[TokenProvider] = None,
    config: Optional[Settings] = None,
    clock: Clock = utc_now,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    configure_logging: bool = True,
) -> Storefront:
    """
    Create and wire the commerce core.

    Customer calls authenticate with `token_provider`; back-office calls
    with `admin_token_provider` (falling back to the customer token).
    """
    config = config or default_settings
    if configure_logging:
        setup_logging(config.log_level)

    def client(cls, tokens):
        return cls(
            base_url=config.api_base_url,
            timeout=config.http_timeout_seconds,
            token_provider=tokens,
            transport=transport,
        )

    admin_tokens = admin_token_provider or token_provider

    catalog = client(CatalogClient, token_provider)
    orders = client(OrdersClient, token_provider)

    storage = SqlCartRepository(create_session_factory(config.cart_database_url), cart_key=config.cart_key)
    cart = CartStore(
        catalog,
        storage,
        clock=clock,
        reprice_on_add=config.cart_reprice_on_add,
        max_quantity=config.cart_max_quantity,
    )

    admin_catalog = client(CatalogClient, admin_tokens)
    admin_orders = client(OrdersClient, admin_tokens)
    admin_users = client(UsersClient, admin_tokens)
    admin_analytics = client(AnalyticsClient, admin_tokens)

    cache = DashboardCache(
        admin_catalog,
        admin_orders,
        admin_users,
        admin_analytics,
        clock=clock,
        ttl=timedelta(seconds=config.cache_ttl_seconds),
    )
    dashboard = AdminDashboard(
        cache,
        admin_catalog,
        admin_orders,
        admin_users,
        admin_analytics,
        session=session,
        clock=clock,
    )

    return Storefront(
        catalog=catalog,
        cart=cart,
        orders=OrderWorkflow(orders, cart, session, clock=clock),
        dashboard=dashboard,
        cache=cache,
    )
