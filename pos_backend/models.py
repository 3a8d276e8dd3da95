import secrets
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from pos_backend.database import Base

PRODUCT_TYPES = ("food", "drink", "pastry")

# Largest value an INTEGER primary key can hold
MAX_ID = 2 ** 63 - 1


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_public_id() -> str:
    return secrets.token_hex(16)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    type = Column(String, nullable=False, default="food")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint("price >= 0", name="ck_products_price"),)


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(32), unique=True, index=True, nullable=False, default=new_public_id)
    cancelled = Column(Boolean, nullable=False, default=False)  # one-way
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    line_items = relationship(
        "OrderProduct",
        back_populates="order",
        order_by="OrderProduct.id",
        cascade="all, delete-orphan",
    )

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.line_items), Decimal("0.00"))


class OrderProduct(Base):
    __tablename__ = "order_products"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    order = relationship("Order", back_populates="line_items")
    product = relationship("Product")

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_products_quantity"),)

    @property
    def subtotal(self) -> Decimal:
        # Live price: edits to a product change the value of past orders too
        return Decimal(self.product.price) * self.quantity
