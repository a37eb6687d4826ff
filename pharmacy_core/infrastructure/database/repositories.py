"""Data access layer for the durable cart"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pharmacy_core.config import settings
from pharmacy_core.domain.exceptions import CartStorageError
from pharmacy_core.domain.models import CartLine, DiscountDescriptor, DiscountKind
from pharmacy_core.infrastructure.database.models import CartLineRecord
from pharmacy_core.utils.money import ZERO, round2


def _to_line(record: CartLineRecord) -> Optional[CartLine]:
    """Rebuild a CartLine; rows that break the line invariants are dropped"""
    if not record.product_id or record.quantity is None or record.quantity < 1:
        return None
    final_unit_price = Decimal(record.final_unit_price)
    return CartLine(
        product_id=record.product_id,
        name=record.name or "",
        quantity=record.quantity,
        base_unit_price=round2(record.base_unit_price),
        final_unit_price=round2(final_unit_price),
        line_total=round2(final_unit_price * record.quantity),
        discount=DiscountDescriptor(
            active=bool(record.discount_active),
            kind=DiscountKind.parse(record.discount_kind),
            value=round2(record.discount_value if record.discount_value is not None else ZERO),
            window_start=record.discount_start,
            window_end=record.discount_end,
        ),
    )


def _apply(record: CartLineRecord, line: CartLine) -> None:
    record.name = line.name
    record.quantity = line.quantity
    record.base_unit_price = line.base_unit_price
    record.final_unit_price = line.final_unit_price
    record.line_total = line.line_total
    record.discount_active = line.discount.active
    record.discount_kind = line.discount.kind.value if line.discount.kind else None
    record.discount_value = line.discount.value
    record.discount_start = line.discount.window_start
    record.discount_end = line.discount.window_end


class SqlCartRepository:
    """Cart storage backed by the `cart_line` table; one session per call"""

    def __init__(self, session_factory: sessionmaker, cart_key: str | None = None):
        self.session_factory = session_factory
        self.cart_key = cart_key or settings.cart_key

    def _lines_query(self, db: Session):
        return db.query(CartLineRecord).filter(CartLineRecord.cart_key == self.cart_key)

    def load_lines(self) -> List[CartLine]:
        """Fetch the cart in insertion order"""
        try:
            with self.session_factory() as db:
                records = self._lines_query(db).order_by(CartLineRecord.id).all()
                lines = [_to_line(record) for record in records]
        except SQLAlchemyError as e:
            raise CartStorageError(f"Could not read cart: {e}") from e

        valid = [line for line in lines if line is not None]
        if len(valid) != len(lines):
            logging.warning(
                "Dropped corrupt cart rows",
                extra={"cart_key": self.cart_key, "dropped": len(lines) - len(valid)},
            )
        return valid

    def save_line(self, line: CartLine) -> None:
        """Insert or update the row for line.product_id"""
        try:
            with self.session_factory() as db:
                record = self._lines_query(db).filter(CartLineRecord.product_id == line.product_id).first()
                if record is None:
                    record = CartLineRecord(cart_key=self.cart_key, product_id=line.product_id)
                    db.add(record)
                _apply(record, line)
                db.commit()
        except (SQLAlchemyError, OverflowError) as e:
            # OverflowError: the driver rejects integers wider than the column
            raise CartStorageError(f"Could not save cart line {line.product_id}: {e}") from e

    def delete_line(self, product_id: str) -> None:
        try:
            with self.session_factory() as db:
                self._lines_query(db).filter(CartLineRecord.product_id == product_id).delete()
                db.commit()
        except SQLAlchemyError as e:
            raise CartStorageError(f"Could not delete cart line {product_id}: {e}") from e

    def delete_all(self) -> None:
        try:
            with self.session_factory() as db:
                self._lines_query(db).delete()
                db.commit()
        except SQLAlchemyError as e:
            raise CartStorageError(f"Could not clear cart: {e}") from e
