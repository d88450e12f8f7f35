from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from shared.config.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Cart(Base):
    """One mutable cart per owner. Emptied on checkout, never deleted."""
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String, nullable=False, unique=True, index=True)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    # Read-side projection of the items, refreshed by CartService.recompute_totals()
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "CartItem",
        back_populates="cart",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )

    def find_item(self, item_id: int):
        return next((item for item in self.items if item.id == item_id), None)

    def find_item_for_product(self, product_id: int):
        return next((item for item in self.items if item.product_id == product_id), None)


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    # Catalog lives elsewhere; no FK so a deleted product surfaces as NotFound at checkout
    product_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False) # price snapshot at add time
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    cart = relationship("Cart", back_populates="items")
