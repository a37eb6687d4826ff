"""SQLAlchemy ORM models for the durable local cart"""

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class CartLineRecord(Base):
    """One cart line, keyed by (cart_key, product_id)"""

    __tablename__ = "cart_line"
    __table_args__ = (UniqueConstraint("cart_key", "product_id", name="uq_cart_line_product"),)

    id = Column(Integer, primary_key=True, autoincrement=True)  # Insertion order of lines
    cart_key = Column(String(64), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    name = Column(Text, nullable=False, default="")
    quantity = Column(Integer, nullable=False)
    base_unit_price = Column(Numeric(12, 2), nullable=False)
    final_unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Discount snapshot the line was priced with
    discount_active = Column(Boolean, nullable=False, default=False)
    discount_kind = Column(String(16), nullable=True)
    discount_value = Column(Numeric(12, 2), nullable=False, default=0)
    discount_start = Column(Date, nullable=True)
    discount_end = Column(Date, nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
