"""
Pydantic schemas normalizing pharmacy API payloads into domain models.

The server is inconsistent about field names (camelCase vs snake_case,
several aliases per field, nested `medicine` objects on order items).
Every alias is resolved here so the domain only sees one canonical shape.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional, Type, TypeVar

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from pharmacy_core.domain.exceptions import MalformedPayloadError
from pharmacy_core.domain.models import (
    AnalyticsOverview,
    CatalogItem,
    DiscountDescriptor,
    DiscountKind,
    Order,
    OrderLine,
    OrderStatus,
    TopSellingItem,
    User,
)
from pharmacy_core.utils.date_utils import calendar_date, parse_timestamp
from pharmacy_core.utils.money import ZERO, round2

P = TypeVar("P", bound=BaseModel)


def _stringify(value: Any) -> Any:
    if value is None:
        return value
    return str(value).strip()


def _zero_if_missing(value: Any) -> Any:
    return 0 if value is None or value == "" else value


def _upper(value: Any) -> Any:
    return str(value).strip().upper() if value is not None else value


Id = Annotated[str, BeforeValidator(_stringify)]
Flag = Annotated[bool, BeforeValidator(lambda v: False if v is None else v)]
Text = Annotated[str, BeforeValidator(lambda v: "" if v is None else str(v))]
Amount = Annotated[Decimal, BeforeValidator(_zero_if_missing)]
Count = Annotated[int, BeforeValidator(_zero_if_missing)]
CalendarDate = Annotated[Optional[date], BeforeValidator(calendar_date)]
Timestamp = Annotated[Optional[datetime], BeforeValidator(parse_timestamp)]
StatusText = Annotated[Optional[str], BeforeValidator(_upper)]


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MedicinePayload(_Payload):
    """GET /medicines, GET /medicines/{id}"""

    id: Id = Field(validation_alias=_aliases("id", "medicineId", "medicine_id"))
    name: Text = Field("", validation_alias=_aliases("name", "medicineName", "medicine_name"))
    category: Text = ""
    price: Amount = Field(ZERO, validation_alias=_aliases("price", "basePrice", "base_price"))
    buy_price: Amount = Field(ZERO, validation_alias=_aliases("buyPrice", "buy_price"))
    stock: Count = Field(0, validation_alias=_aliases("stock", "quantity"))
    discount_active: Flag = Field(False, validation_alias=_aliases("discountActive", "discount_active"))
    discount_type: Optional[str] = Field(None, validation_alias=_aliases("discountType", "discount_type"))
    discount_value: Amount = Field(ZERO, validation_alias=_aliases("discountValue", "discount_value"))
    discount_start: CalendarDate = Field(None, validation_alias=_aliases("discountStart", "discount_start"))
    discount_end: CalendarDate = Field(None, validation_alias=_aliases("discountEnd", "discount_end"))
    expiry: CalendarDate = Field(None, validation_alias=_aliases("expiry", "expiryDate", "expiry_date"))

    def to_domain(self) -> CatalogItem:
        # Server descriptors are trusted as-is; bounds are only enforced at creation
        discount = DiscountDescriptor(
            active=self.discount_active,
            kind=DiscountKind.parse(self.discount_type),
            value=self.discount_value,
            window_start=self.discount_start,
            window_end=self.discount_end,
        )
        return CatalogItem(
            id=self.id,
            name=self.name,
            category=self.category,
            base_price=round2(self.price),
            buy_price=round2(self.buy_price),
            stock=max(self.stock, 0),
            discount=discount,
            expiry=self.expiry,
        )


class OrderItemPayload(_Payload):
    """Order line as returned inside an order"""

    medicine_id: Id = Field(validation_alias=_aliases("medicineId", "medicine_id", "productId", "product_id", "id"))
    name: Text = Field("", validation_alias=_aliases("medicineName", "medicine_name", "name"))
    quantity: Count = Field(1, validation_alias=_aliases("quantity", "qty", "count"))
    unit_price: Amount = Field(
        ZERO,
        validation_alias=_aliases("finalPricePerUnit", "finalUnitPrice", "finalPrice", "unitPrice", "price"),
    )
    base_unit_price: Optional[Decimal] = Field(
        None, validation_alias=_aliases("basePricePerUnit", "baseUnitPrice", "originalPrice", "medicinePrice")
    )
    buy_price: Optional[Decimal] = Field(None, validation_alias=_aliases("buyPriceAtSale", "buyPrice", "buy_price"))
    line_total: Optional[Decimal] = Field(None, validation_alias=_aliases("lineTotal", "line_total", "subtotal"))

    @model_validator(mode="before")
    @classmethod
    def flatten_medicine(cls, data: Any) -> Any:
        """Lift id/name/prices out of a nested `medicine` object when the item lacks them"""
        if not isinstance(data, dict) or not isinstance(data.get("medicine"), dict):
            return data
        medicine = data["medicine"]
        flat = dict(data)
        for target, source in (("medicineId", "id"), ("medicineName", "name"), ("buyPrice", "buyPrice")):
            if medicine.get(source) is not None:
                flat.setdefault(target, medicine[source])
        if not any(k in flat for k in ("finalPricePerUnit", "finalUnitPrice", "finalPrice", "unitPrice", "price")):
            flat["price"] = medicine.get("finalPrice", medicine.get("price"))
        return flat

    def to_domain(self) -> OrderLine:
        quantity = max(self.quantity, 1)
        unit_price = round2(self.unit_price)
        return OrderLine(
            product_id=self.medicine_id,
            name=self.name,
            quantity=quantity,
            unit_price=unit_price,
            base_unit_price=round2(self.base_unit_price) if self.base_unit_price is not None else unit_price,
            line_total=round2(self.line_total) if self.line_total is not None else round2(unit_price * quantity),
            buy_price=round2(self.buy_price) if self.buy_price is not None else None,
        )


class OrderPayload(_Payload):
    """GET /orders, /orders/{id}, /orders/history/{userId}, transition responses"""

    id: Id = Field(validation_alias=_aliases("id", "orderId", "order_id"))
    user_id: Optional[Id] = Field(None, validation_alias=_aliases("userId", "user_id", "customerId"))
    items: List[OrderItemPayload] = Field(
        default_factory=list, validation_alias=_aliases("items", "orderItems", "order_items", "lines")
    )
    total_amount: Amount = Field(ZERO, validation_alias=_aliases("totalAmount", "total_amount", "total"))
    status: OrderStatus
    cancel_reason: Optional[str] = Field(None, validation_alias=_aliases("cancelReason", "cancel_reason"))
    cancel_requested_at: Timestamp = Field(
        None, validation_alias=_aliases("cancelRequestedAt", "cancel_requested_at")
    )
    cancelled_at: Timestamp = Field(None, validation_alias=_aliases("cancelledAt", "cancelled_at", "canceledAt"))
    pre_cancel_status: Optional[OrderStatus] = Field(
        None, validation_alias=_aliases("preCancelStatus", "pre_cancel_status", "previousStatus", "statusBeforeCancel")
    )
    created_at: Timestamp = Field(None, validation_alias=_aliases("createdAt", "created_at", "orderDate"))
    customer_name: Text = Field("", validation_alias=_aliases("customerName", "customer_name"))
    customer_phone: Text = Field("", validation_alias=_aliases("customerPhone", "customer_phone"))
    customer_email: Text = Field("", validation_alias=_aliases("customerEmail", "customer_email"))

    @model_validator(mode="before")
    @classmethod
    def normalize_status(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        flat = dict(data)
        for key in ("status", "preCancelStatus", "pre_cancel_status", "previousStatus", "statusBeforeCancel"):
            if isinstance(flat.get(key), str):
                flat[key] = flat[key].strip().upper() or None
        # Some endpoints spell it CANCELED
        if flat.get("status") == "CANCELED":
            flat["status"] = "CANCELLED"
        return flat

    def to_domain(self) -> Order:
        return Order(
            id=self.id,
            user_id=self.user_id,
            lines=[item.to_domain() for item in self.items],
            total_amount=round2(self.total_amount),
            status=self.status,
            cancel_reason=self.cancel_reason,
            cancel_requested_at=self.cancel_requested_at,
            cancelled_at=self.cancelled_at,
            pre_cancel_status=self.pre_cancel_status,
            created_at=self.created_at,
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            customer_email=self.customer_email,
        )


class UserPayload(_Payload):
    """GET /admin/users"""

    id: Id = Field(validation_alias=_aliases("id", "userId", "user_id"))
    first_name: Text = Field("", validation_alias=_aliases("firstName", "firstname", "first_name"))
    last_name: Text = Field("", validation_alias=_aliases("lastName", "lastname", "last_name"))
    email: Text = Field("", validation_alias=_aliases("email", "emailAddress", "username"))
    phone: Text = Field("", validation_alias=_aliases("phone", "mobile", "customerPhone"))
    role: StatusText = "CUSTOMER"

    def to_domain(self) -> User:
        return User(
            id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            phone=self.phone,
            role=self.role or "CUSTOMER",
        )


class AnalyticsOverviewPayload(_Payload):
    """GET /admin/analytics/overview"""

    total_revenue: Amount = Field(ZERO, validation_alias=_aliases("totalRevenue", "total_revenue"))
    total_profit: Amount = Field(ZERO, validation_alias=_aliases("totalProfit", "total_profit"))
    total_units_sold: Count = Field(0, validation_alias=_aliases("totalUnitsSold", "total_units_sold"))
    total_orders: Count = Field(0, validation_alias=_aliases("totalOrders", "total_orders"))
    pending_orders: Count = Field(0, validation_alias=_aliases("pendingOrders", "pending_orders"))
    delivered_orders: Count = Field(0, validation_alias=_aliases("deliveredOrders", "delivered_orders"))
    cancelled_orders: Count = Field(0, validation_alias=_aliases("cancelledOrders", "cancelled_orders"))

    def to_domain(self) -> AnalyticsOverview:
        return AnalyticsOverview(
            total_revenue=round2(self.total_revenue),
            total_profit=round2(self.total_profit),
            total_units_sold=self.total_units_sold,
            total_orders=self.total_orders,
            pending_orders=self.pending_orders,
            delivered_orders=self.delivered_orders,
            cancelled_orders=self.cancelled_orders,
        )


class TopSellingPayload(_Payload):
    """GET /admin/analytics/top-selling"""

    medicine_name: Text = Field("", validation_alias=_aliases("medicineName", "medicine_name", "name"))
    total_qty: Count = Field(0, validation_alias=_aliases("totalQty", "total_qty", "quantity"))
    total_revenue: Amount = Field(ZERO, validation_alias=_aliases("totalRevenue", "total_revenue", "revenue"))

    def to_domain(self) -> TopSellingItem:
        return TopSellingItem(
            medicine_name=self.medicine_name,
            total_qty=self.total_qty,
            total_revenue=round2(self.total_revenue),
        )


def parse_one(schema: Type[P], data: Any) -> P:
    """
    Validate a single-object payload.

    Raises:
        MalformedPayloadError: not an object, or fields fail validation
    """
    if not isinstance(data, dict):
        raise MalformedPayloadError(f"expected {schema.__name__} object, got {type(data).__name__}")
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedPayloadError(f"invalid {schema.__name__}: {e.error_count()} field error(s)") from e


def parse_many(schema: Type[P], data: Any) -> List[P]:
    """
    Validate a collection payload.

    Items that fail validation are skipped with a warning so one bad row
    cannot blank a whole back-office table.

    Raises:
        MalformedPayloadError: the payload itself is not a list
    """
    if not isinstance(data, list):
        raise MalformedPayloadError(f"expected a list of {schema.__name__}, got {type(data).__name__}")

    parsed: List[P] = []
    skipped = 0
    for raw in data:
        try:
            parsed.append(parse_one(schema, raw))
        except MalformedPayloadError:
            skipped += 1
    if skipped:
        logging.warning(
            "Skipped malformed payload items",
            extra={"schema": schema.__name__, "skipped": skipped, "received": len(data)},
        )
    return parsed
