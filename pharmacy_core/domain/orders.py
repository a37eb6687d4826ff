"""Order lifecycle - valid states and the transitions customers and admins may request"""

from dataclasses import replace
from datetime import datetime
from typing import FrozenSet, Optional

from pharmacy_core.config import settings
from pharmacy_core.domain.exceptions import InvalidStateError, ValidationError
from pharmacy_core.domain.models import Order, OrderStatus

CANCELLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.PAID})
TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({OrderStatus.CANCELLED})

# Admin override targets; CANCEL_REQUESTED and CANCELLED go through the cancel workflow
ADMIN_SETTABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.DELIVERED}
)

OTHER_REASON = "Other"
CANCEL_REASON_PRESETS = (
    "Ordered by mistake",
    "Need to change address/phone",
    "Delivery is too late",
    "Found a better option",
    OTHER_REASON,
)


def can_request_cancel(order: Order) -> bool:
    return order.status in CANCELLABLE_STATUSES


def is_terminal(order: Order) -> bool:
    return order.status in TERMINAL_STATUSES


def validate_cancel_reason(reason: Optional[str], min_length: Optional[int] = None) -> str:
    """
    Trim and check a cancel reason.

    Raises:
        ValidationError: fewer than `min_length` characters after trimming
    """
    minimum = settings.cancel_reason_min_length if min_length is None else min_length
    cleaned = (reason or "").strip()
    if len(cleaned) < minimum:
        raise ValidationError(f"Cancel reason is required (min {minimum} characters)")
    return cleaned


def compose_cancel_reason(preset: Optional[str], detail: Optional[str]) -> str:
    """
    Combine a preset label with free-text detail.

    - "Other": the detail alone, which must pass the minimum length itself
    - preset and detail: "<preset> - <detail>"
    - either one alone: that one

    Raises:
        ValidationError: the resulting reason (or the "Other" detail) is too short
    """
    label = (preset or "").strip()
    text = (detail or "").strip()

    if label == OTHER_REASON:
        return validate_cancel_reason(text)
    if label and text:
        return validate_cancel_reason(f"{label} - {text}")
    return validate_cancel_reason(label or text)


def request_cancel(order: Order, reason: str, now: datetime) -> Order:
    """
    PENDING/PAID -> CANCEL_REQUESTED, remembering the status to return to on rejection.

    Raises:
        ValidationError: reason too short
        InvalidStateError: order is not PENDING or PAID
    """
    cleaned = validate_cancel_reason(reason)
    if not can_request_cancel(order):
        raise InvalidStateError(f"Order {order.id} cannot be cancelled from {order.status.value}")
    return replace(
        order,
        status=OrderStatus.CANCEL_REQUESTED,
        cancel_reason=cleaned,
        cancel_requested_at=now,
        pre_cancel_status=order.status,
    )


def approve_cancel(order: Order, now: datetime) -> Order:
    """
    CANCEL_REQUESTED -> CANCELLED. Stock is restored by the server.

    Raises:
        InvalidStateError: order has no pending cancel request
    """
    if order.status is not OrderStatus.CANCEL_REQUESTED:
        raise InvalidStateError(f"Order {order.id} has no pending cancel request ({order.status.value})")
    return replace(order, status=OrderStatus.CANCELLED, cancelled_at=now)


def reject_cancel(order: Order) -> Order:
    """
    CANCEL_REQUESTED -> pre_cancel_status, clearing the cancel fields.

    Raises:
        InvalidStateError: no pending cancel request, or the status to restore is unknown
    """
    if order.status is not OrderStatus.CANCEL_REQUESTED:
        raise InvalidStateError(f"Order {order.id} has no pending cancel request ({order.status.value})")
    if order.pre_cancel_status is None:
        raise InvalidStateError(f"Order {order.id} does not record its status before the cancel request")
    return replace(
        order,
        status=order.pre_cancel_status,
        cancel_reason=None,
        cancel_requested_at=None,
        pre_cancel_status=None,
    )


def force_set_status(order: Order, status: OrderStatus) -> Order:
    """
    Admin override outside the transition table (e.g. PENDING <-> DELIVERED).

    Unaudited in the storefront; the order service is expected to keep its
    own record of who changed what.

    Raises:
        ValidationError: target is CANCEL_REQUESTED or CANCELLED
        InvalidStateError: order is already terminal
    """
    if status not in ADMIN_SETTABLE_STATUSES:
        raise ValidationError(f"Status {status.value} must be reached through the cancel workflow")
    if is_terminal(order):
        raise InvalidStateError(f"Order {order.id} is {order.status.value} and can no longer change")
    return replace(order, status=status)
