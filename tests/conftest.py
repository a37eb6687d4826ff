"""Pytest fixtures for testing"""

import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx

from pharmacy_core.domain.cart import CartStore
from pharmacy_core.domain.exceptions import RemoteError
from pharmacy_core.domain.models import CatalogItem, DiscountDescriptor, DiscountKind, SessionUser
from pharmacy_core.infrastructure.database.repositories import SqlCartRepository
from pharmacy_core.infrastructure.database.session import create_session_factory
from factories import TODAY, FakeClock, make_item
from mock_server import MockState, create_mock_app


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def customer() -> SessionUser:
    return SessionUser(id="U1", role="CUSTOMER", name="Rahim Uddin", email="rahim@example.com", phone="01700000000")


@pytest.fixture
def admin() -> SessionUser:
    return SessionUser(id="A1", role="ADMIN", name="Store Admin")


@pytest.fixture
def percent_discount() -> DiscountDescriptor:
    return DiscountDescriptor.create(
        DiscountKind.PERCENT,
        "10",
        window_start=TODAY - timedelta(days=3),
        window_end=TODAY + timedelta(days=3),
    )


@pytest.fixture
def cart_storage(tmp_path) -> SqlCartRepository:
    """Cart repository on a throwaway SQLite file"""
    session_factory = create_session_factory(f"sqlite:///{tmp_path / 'cart.db'}")
    return SqlCartRepository(session_factory, cart_key="test-cart")


@pytest.fixture
def catalog() -> AsyncMock:
    """Catalog lookup serving P1 (20.00, no discount) and P2 (100.00, 10% off)"""
    items = {
        "P1": make_item("P1", "20.00"),
        "P2": make_item(
            "P2",
            "100.00",
            DiscountDescriptor(active=True, kind=DiscountKind.PERCENT, value=Decimal("10")),
        ),
    }

    async def fetch_item(item_id: str) -> CatalogItem:
        if item_id not in items:
            raise RemoteError(404, "medicine not found")
        return items[item_id]

    mock = AsyncMock()
    mock.items = items
    mock.fetch_item.side_effect = fetch_item
    return mock


@pytest.fixture
def cart(catalog: AsyncMock, cart_storage: SqlCartRepository, clock: FakeClock) -> CartStore:
    return CartStore(catalog, cart_storage, clock=clock)


@pytest.fixture
def mock_state() -> MockState:
    """Mock pharmacy API seeded with two medicines and two users"""
    state = MockState()
    state.medicines = {
        "1": {
            "id": 1,
            "name": "Napa 500mg",
            "category": "Pain relief",
            "price": 20.0,
            "buyPrice": 14.0,
            "stock": 100,
            "discountActive": False,
            "expiryDate": "2027-06-30",
        },
        "2": {
            "id": 2,
            "name": "Seclo 20mg",
            "category": "Gastric",
            "price": 100.0,
            "buyPrice": 60.0,
            "stock": 40,
            "discountActive": True,
            "discountType": "PERCENT",
            "discountValue": 10,
            "discountStart": "2026-10-01",
            "discountEnd": "2026-10-31",
            "finalPrice": 90.0,
            "expiryDate": "2027-01-31",
        },
    }
    state.users = {
        "7": {"id": 7, "firstName": "Karim", "lastName": "Ahmed", "email": "karim@example.com", "role": "customer"},
        "8": {"id": 8, "firstname": "Nadia", "lastname": "Islam", "emailAddress": "nadia@example.com"},
    }
    return state


@pytest.fixture
def transport(mock_state: MockState) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=create_mock_app(mock_state))
