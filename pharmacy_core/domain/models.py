"""Domain models - pure Python dataclasses representing commerce entities"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from pharmacy_core.domain.exceptions import ValidationError
from pharmacy_core.utils.money import ZERO, round2, to_money

T = TypeVar("T")


class DiscountKind(Enum):
    """How a discount value is applied to the base price"""

    PERCENT = "PERCENT"
    FLAT = "FLAT"

    @classmethod
    def parse(cls, raw: Any) -> Optional["DiscountKind"]:
        """Unknown kinds map to None, which prices as zero discount"""
        try:
            return cls(str(raw or "").strip().upper())
        except ValueError:
            return None


class OrderStatus(Enum):
    """Current status of an order in its lifecycle"""

    PENDING = "PENDING"
    PAID = "PAID"
    DELIVERED = "DELIVERED"
    CANCEL_REQUESTED = "CANCEL_REQUESTED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class DiscountDescriptor:
    """Discount attached to a catalog item, as published by the catalog"""

    active: bool = False
    kind: Optional[DiscountKind] = None
    value: Decimal = ZERO
    window_start: Optional[date] = None
    window_end: Optional[date] = None

    @classmethod
    def create(
        cls,
        kind: DiscountKind,
        value: Any,
        active: bool = True,
        window_start: Optional[date] = None,
        window_end: Optional[date] = None,
    ) -> "DiscountDescriptor":
        """
        Build a descriptor from admin input.

        Raises:
            ValidationError: negative value, percent above 100, or an inverted window
        """
        amount = to_money(value, field="discount value")
        if kind is DiscountKind.PERCENT and amount > 100:
            raise ValidationError("percent discount cannot exceed 100")
        if window_start and window_end and window_start > window_end:
            raise ValidationError("discount window starts after it ends")
        return cls(active=active, kind=kind, value=amount, window_start=window_start, window_end=window_end)


NO_DISCOUNT = DiscountDescriptor()


@dataclass(frozen=True)
class CatalogItem:
    """Read-only snapshot of a medicine in the remote catalog"""

    id: str
    name: str
    base_price: Decimal
    category: str = ""
    buy_price: Decimal = ZERO
    stock: int = 0
    discount: DiscountDescriptor = NO_DISCOUNT
    expiry: Optional[date] = None

    @classmethod
    def create(
        cls,
        name: str,
        category: str,
        price: Any,
        buy_price: Any,
        stock: Any,
        expiry: Optional[date],
        discount: DiscountDescriptor = NO_DISCOUNT,
        id: str = "",
    ) -> "CatalogItem":
        """
        Build a medicine from admin input before it is sent to the catalog.

        An inactive discount is stored as NO_DISCOUNT.

        Raises:
            ValidationError: missing fields, a non-positive price, a buy price
                above the price, negative stock, or a discount the price cannot carry
        """
        if not (name or "").strip() or not (category or "").strip() or expiry is None:
            raise ValidationError("name, category and expiry date are required")
        amount = to_money(price, field="price")
        if amount <= 0:
            raise ValidationError("price must be positive")
        cost = to_money(buy_price, field="buy price")
        if cost > amount:
            raise ValidationError("buy price cannot be greater than the selling price")
        if isinstance(stock, bool):
            raise ValidationError("stock must be a whole number")
        try:
            count = int(str(stock).strip())
        except ValueError as e:
            raise ValidationError(f"stock must be a whole number, got {stock!r}") from e
        if count < 0:
            raise ValidationError("stock must not be negative")

        if discount.active:
            if discount.kind is None:
                raise ValidationError("discount type is required when the discount is active")
            # Re-checks percent bound and window order for hand-built descriptors
            discount = DiscountDescriptor.create(
                discount.kind, discount.value, True, discount.window_start, discount.window_end
            )
            if discount.value <= 0:
                raise ValidationError("discount value must be positive when the discount is active")
            if discount.kind is DiscountKind.FLAT and discount.value > amount:
                raise ValidationError("flat discount cannot be greater than the selling price")
        else:
            discount = NO_DISCOUNT

        return cls(
            id=str(id or ""),
            name=name.strip(),
            category=category.strip(),
            base_price=amount,
            buy_price=cost,
            stock=count,
            discount=discount,
            expiry=expiry,
        )


@dataclass(frozen=True)
class CartLine:
    """One product's aggregated entry in the cart"""

    product_id: str
    name: str
    quantity: int
    base_unit_price: Decimal
    final_unit_price: Decimal
    line_total: Decimal
    discount: DiscountDescriptor = NO_DISCOUNT

    @classmethod
    def priced(
        cls,
        product_id: str,
        name: str,
        quantity: int,
        base_unit_price: Decimal,
        final_unit_price: Decimal,
        discount: DiscountDescriptor = NO_DISCOUNT,
    ) -> "CartLine":
        """Create a line with line_total derived from the unit price"""
        return cls(
            product_id=product_id,
            name=name,
            quantity=quantity,
            base_unit_price=base_unit_price,
            final_unit_price=final_unit_price,
            line_total=round2(final_unit_price * quantity),
            discount=discount,
        )

    def with_quantity(self, quantity: int) -> "CartLine":
        return replace(self, quantity=quantity, line_total=round2(self.final_unit_price * quantity))


@dataclass(frozen=True)
class CartTotals:
    """Cart aggregates, each rounded once after summing raw line values"""

    subtotal: Decimal
    grand_total: Decimal
    saved: Decimal
    item_count: int


@dataclass(frozen=True)
class OrderLine:
    """Immutable line snapshot inside an order"""

    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    base_unit_price: Decimal
    line_total: Decimal
    buy_price: Optional[Decimal] = None


@dataclass(frozen=True)
class Order:
    """Client-side mirror of an order owned by the remote order service"""

    id: str
    user_id: Optional[str]
    lines: List[OrderLine]
    total_amount: Decimal
    status: OrderStatus
    cancel_reason: Optional[str] = None
    cancel_requested_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    pre_cancel_status: Optional[OrderStatus] = None  # Status a rejected cancellation returns to
    created_at: Optional[datetime] = None
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""


@dataclass(frozen=True)
class User:
    """Registered user as listed in the back-office"""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    role: str = "CUSTOMER"

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email


@dataclass(frozen=True)
class SessionUser:
    """Authenticated actor supplied by the external session manager"""

    id: str
    role: str = "CUSTOMER"
    name: str = ""
    email: str = ""
    phone: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role.upper() == "ADMIN"


@dataclass(frozen=True)
class AnalyticsOverview:
    """Headline numbers for the admin reports card"""

    total_revenue: Decimal = ZERO
    total_profit: Decimal = ZERO
    total_units_sold: int = 0
    total_orders: int = 0
    pending_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0


@dataclass(frozen=True)
class TopSellingItem:
    medicine_name: str
    total_qty: int
    total_revenue: Decimal


@dataclass(frozen=True)
class CheckoutResult:
    """Outcome of turning the cart into an order"""

    order: Order
    amount_due: Decimal
    uncleared_product_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """One cached collection; replaced wholesale, never patched"""

    timestamp: datetime
    data: T
    error: Optional[str] = None
