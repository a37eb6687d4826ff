"""Per-medicine revenue, cost and profit built from cached orders and inventory"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from pharmacy_core.domain.models import CatalogItem, Order, OrderStatus
from pharmacy_core.utils.money import ZERO, round2

# Only orders the customer actually paid for count as sales
SOLD_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.DELIVERED})


@dataclass(frozen=True)
class ProfitRow:
    product_id: str
    name: str
    category: str
    sold_qty: int
    revenue: Decimal
    cost: Decimal
    profit: Decimal


@dataclass(frozen=True)
class ProfitReport:
    rows: List[ProfitRow]
    sold_qty: int
    revenue: Decimal
    cost: Decimal
    profit: Decimal


def build_profit_report(
    orders: Iterable[Order],
    inventory: Iterable[CatalogItem],
    only_sold: bool = True,
) -> ProfitReport:
    """
    Aggregate PAID and DELIVERED order lines per medicine.

    Unit cost is the buy price captured on the order line, falling back to
    the catalog's current buy price. Rows are sorted by profit, highest first.
    With only_sold=False, catalog items without sales are listed with zeros.
    """
    catalog: Dict[str, CatalogItem] = {str(item.id): item for item in inventory}
    totals: Dict[str, dict] = {}

    for order in orders:
        if order.status not in SOLD_STATUSES:
            continue
        for line in order.lines:
            if line.quantity <= 0:
                continue
            item = catalog.get(line.product_id)
            buy_price = line.buy_price if line.buy_price is not None else (item.buy_price if item else ZERO)
            row = totals.setdefault(
                line.product_id,
                {
                    "name": line.name,
                    "category": item.category if item else "",
                    "sold_qty": 0,
                    "revenue": ZERO,
                    "cost": ZERO,
                },
            )
            if item is not None and item.name:
                row["name"] = item.name
            row["sold_qty"] += line.quantity
            row["revenue"] += line.unit_price * line.quantity
            row["cost"] += buy_price * line.quantity

    if not only_sold:
        for product_id, item in catalog.items():
            totals.setdefault(
                product_id,
                {"name": item.name, "category": item.category, "sold_qty": 0, "revenue": ZERO, "cost": ZERO},
            )

    rows = [
        ProfitRow(
            product_id=product_id,
            name=row["name"],
            category=row["category"],
            sold_qty=row["sold_qty"],
            revenue=round2(row["revenue"]),
            cost=round2(row["cost"]),
            profit=round2(row["revenue"] - row["cost"]),
        )
        for product_id, row in totals.items()
    ]
    rows.sort(key=lambda r: r.profit, reverse=True)

    revenue = sum((row["revenue"] for row in totals.values()), ZERO)
    cost = sum((row["cost"] for row in totals.values()), ZERO)
    return ProfitReport(
        rows=rows,
        sold_qty=sum(row.sold_qty for row in rows),
        revenue=round2(revenue),
        cost=round2(cost),
        profit=round2(revenue - cost),
    )
