"""Client-side shopping cart kept consistent with the pricing engine"""

import asyncio
import logging
import math
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Protocol

from pharmacy_core.config import settings
from pharmacy_core.domain.exceptions import CartStorageError, CatalogLookupError, DomainException
from pharmacy_core.domain.models import CartLine, CartTotals, CatalogItem
from pharmacy_core.domain.pricing import compute_final_price
from pharmacy_core.infrastructure.observability.logging import log_cart_mutation
from pharmacy_core.infrastructure.observability.metrics import cart_mutation_counter
from pharmacy_core.utils.date_utils import Clock, utc_now
from pharmacy_core.utils.money import ZERO, round2


class CatalogLookup(Protocol):
    async def fetch_item(self, item_id: str) -> CatalogItem: ...


class CartStorage(Protocol):
    """Durable keyed store; the only source of truth between sessions"""

    def load_lines(self) -> List[CartLine]: ...

    def save_line(self, line: CartLine) -> None: ...

    def delete_line(self, product_id: str) -> None: ...

    def delete_all(self) -> None: ...


def normalize_quantity(value: Any, maximum: Optional[int] = None) -> int:
    """
    Coerce a requested quantity to a whole number in [1, maximum].

    Non-numeric, non-finite, zero and negative input become 1;
    fractions are floored (2.7 -> 2, 0.5 -> 1). `maximum` defaults to
    settings.cart_max_quantity.
    """
    limit = settings.cart_max_quantity if maximum is None else maximum
    if isinstance(value, bool):
        return 1
    if isinstance(value, str) and value.strip().isdecimal():
        try:
            value = int(value)
        except ValueError:
            # Digit strings past the interpreter's int conversion limit
            return limit
    if isinstance(value, int):
        return min(limit, max(1, value))
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    except OverflowError:
        return limit
    if not math.isfinite(number) or number <= 0:
        return 1
    return min(limit, max(1, math.floor(number)))


def price_line(item: CatalogItem, quantity: int, as_of, product_id: Optional[str] = None) -> CartLine:
    """
    Build a cart line from a catalog snapshot at `as_of`.

    `product_id` is the cart key; it defaults to the catalog's own id.
    """
    final_unit_price = compute_final_price(item.base_price, item.discount, as_of)
    return CartLine.priced(
        product_id=product_id if product_id is not None else str(item.id),
        name=item.name,
        quantity=quantity,
        base_unit_price=round2(item.base_price),
        final_unit_price=round2(final_unit_price),
        discount=item.discount,
    )


def summarize(lines: Iterable[CartLine]) -> CartTotals:
    """
    Sum raw unit price x quantity across lines and round once at the end,
    so per-line rounding of line_total does not drift the totals.
    """
    subtotal = ZERO
    grand_total = ZERO
    item_count = 0
    for line in lines:
        subtotal += line.base_unit_price * line.quantity
        grand_total += line.final_unit_price * line.quantity
        item_count += line.quantity
    return CartTotals(
        subtotal=round2(subtotal),
        grand_total=round2(grand_total),
        saved=round2(subtotal - grand_total),
        item_count=item_count,
    )


class CartStore:
    """
    Owns the cart. Every mutation is written through to `storage`.

    Repeat adds reuse the stored unit price (a point-in-time snapshot).
    `reprice()` is the explicit way to pick up catalog price changes;
    `reprice_on_add=True` applies it to a line whenever it is added again.
    Line quantities never exceed `max_quantity`.
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        storage: CartStorage,
        clock: Clock = utc_now,
        reprice_on_add: bool = False,
        max_quantity: Optional[int] = None,
    ):
        self.catalog = catalog
        self.storage = storage
        self.clock = clock
        self.reprice_on_add = reprice_on_add
        self.max_quantity = settings.cart_max_quantity if max_quantity is None else max_quantity
        self._lock = asyncio.Lock()

    def _find(self, product_id: str) -> Optional[CartLine]:
        for line in self.storage.load_lines():
            if line.product_id == product_id:
                return line
        return None

    async def _lookup(self, product_id: str) -> CatalogItem:
        try:
            return await self.catalog.fetch_item(product_id)
        except DomainException as e:
            raise CatalogLookupError(f"Could not resolve product {product_id}: {e}") from e

    def _save(self, operation: str, line: CartLine) -> None:
        self.storage.save_line(line)
        cart_mutation_counter.labels(operation=operation).inc()
        log_cart_mutation(operation, line.product_id, line.quantity)

    async def add_item(self, product_id: Any, quantity: Any = 1) -> CartLine:
        """
        Add `quantity` of a product, merging into an existing line.

        Raises:
            CatalogLookupError: The product is new to the cart and cannot be resolved
        """
        key = str(product_id)
        add_qty = normalize_quantity(quantity, self.max_quantity)

        async with self._lock:
            existing = self._find(key)
            if existing is None:
                item = await self._lookup(key)
                line = price_line(item, add_qty, self.clock(), product_id=key)
            else:
                total_qty = min(self.max_quantity, existing.quantity + add_qty)
                line = existing.with_quantity(total_qty)
                if self.reprice_on_add:
                    try:
                        item = await self._lookup(key)
                        line = price_line(item, total_qty, self.clock(), product_id=key)
                    except CatalogLookupError as e:
                        # Snapshot price stands when the lookup fails
                        logging.warning("Re-price on add failed", extra={"product_id": key, "error": str(e)})

            self._save("add", line)
        return line

    async def remove_item(self, product_id: Any) -> None:
        """Drop a line; unknown ids are a no-op"""
        key = str(product_id)
        async with self._lock:
            if self._find(key) is None:
                return
            self.storage.delete_line(key)
            cart_mutation_counter.labels(operation="remove").inc()
            log_cart_mutation("remove", key)

    async def update_quantity(self, product_id: Any, quantity: Any) -> Optional[CartLine]:
        """Set a line's quantity (clamped to [1, max_quantity]); returns None for unknown ids"""
        key = str(product_id)
        async with self._lock:
            existing = self._find(key)
            if existing is None:
                return None
            line = existing.with_quantity(normalize_quantity(quantity, self.max_quantity))
            self._save("update_quantity", line)
        return line

    async def reprice(self) -> List[CartLine]:
        """
        Re-price every line against the current catalog.

        Lines whose lookup fails keep their snapshot price.
        """
        async with self._lock:
            repriced = []
            for line in self.storage.load_lines():
                try:
                    item = await self._lookup(line.product_id)
                except CatalogLookupError as e:
                    logging.warning("Re-price skipped line", extra={"product_id": line.product_id, "error": str(e)})
                    repriced.append(line)
                    continue
                updated = price_line(item, line.quantity, self.clock(), product_id=line.product_id)
                if updated != line:
                    self._save("reprice", updated)
                repriced.append(updated)
        return repriced

    def get_lines(self) -> List[CartLine]:
        return self.storage.load_lines()

    def get_totals(self) -> CartTotals:
        return summarize(self.storage.load_lines())

    def item_count(self) -> int:
        return sum(line.quantity for line in self.storage.load_lines())

    async def clear(self, product_ids: Optional[Iterable[Any]] = None) -> List[str]:
        """
        Empty the cart, or only the given product ids.

        A failed bulk delete falls back to per-line deletes. Returns the ids
        that could not be removed; they stay in the cart.
        """
        async with self._lock:
            if product_ids is None:
                try:
                    self.storage.delete_all()
                    cart_mutation_counter.labels(operation="clear").inc()
                    log_cart_mutation("clear", None)
                    return []
                except CartStorageError as e:
                    logging.warning("Bulk cart clear failed, removing lines one by one", extra={"error": str(e)})
                    targets = [line.product_id for line in self.storage.load_lines()]
            else:
                targets = [str(product_id) for product_id in product_ids]

            remaining = []
            for key in targets:
                try:
                    self.storage.delete_line(key)
                except CartStorageError as e:
                    logging.warning("Cart line not cleared", extra={"product_id": key, "error": str(e)})
                    remaining.append(key)
            cart_mutation_counter.labels(operation="clear").inc()
            log_cart_mutation("clear", None, len(targets) - len(remaining))
            return remaining

    async def release(self, quantities: Mapping[Any, int]) -> List[str]:
        """
        Take ordered quantities out of the cart.

        Each line loses the given quantity and is deleted once nothing is
        left, so units added after the quantities were read stay in the
        cart. Returns the ids whose lines could not be updated.
        """
        async with self._lock:
            current = {line.product_id: line for line in self.storage.load_lines()}
            failed = []
            released = 0
            for product_id, quantity in quantities.items():
                key = str(product_id)
                line = current.get(key)
                if line is None:
                    continue
                left = line.quantity - quantity
                try:
                    if left > 0:
                        self.storage.save_line(line.with_quantity(left))
                    else:
                        self.storage.delete_line(key)
                except CartStorageError as e:
                    logging.warning("Cart line not released", extra={"product_id": key, "error": str(e)})
                    failed.append(key)
                    continue
                released += min(quantity, line.quantity)
            cart_mutation_counter.labels(operation="release").inc()
            log_cart_mutation("release", None, released)
            return failed
