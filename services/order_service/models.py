from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, inspect
from sqlalchemy.orm import relationship, validates
from shared.config.database import Base

from .status import OrderStatus, PaymentStatus


def _utcnow():
    return datetime.now(timezone.utc)


def _enum_column(enum_cls):
    # Persist the lowercase values, not the member names
    return Enum(enum_cls, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e])


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, nullable=False, unique=True)
    owner_id = Column(String, nullable=False, index=True)
    status = Column(_enum_column(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    payment_status = Column(_enum_column(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    # total = subtotal + tax + shipping_cost - discount, always computed by shared.pricing
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    payment_intent_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )


class OrderItem(Base):
    """Line item frozen at checkout. Later catalog edits never reach these columns."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=False)
    product_name = Column(String, nullable=False)
    product_sku = Column(String, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    order = relationship("Order", back_populates="items")

    @validates("product_id", "product_name", "product_sku", "unit_price", "quantity", "subtotal")
    def _freeze_snapshot(self, key, value):
        if inspect(self).has_identity:
            raise AttributeError(f"OrderItem.{key} is a snapshot and cannot be changed")
        return value
