"""
Immutable views of a persisted order.

Services hand these out instead of ORM rows so nothing downstream can
mutate an order behind the state machines' back.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from .models import Order, OrderItem
from .status import OrderStatus, PaymentStatus


@dataclass(frozen=True)
class OrderItemSnapshot:
    id: int
    product_id: int
    product_name: str
    product_sku: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal

    @classmethod
    def from_model(cls, item: OrderItem) -> "OrderItemSnapshot":
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            product_sku=item.product_sku,
            unit_price=item.unit_price,
            quantity=item.quantity,
            subtotal=item.subtotal,
        )


@dataclass(frozen=True)
class OrderSnapshot:
    id: int
    order_number: str
    owner_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    items: tuple
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal
    shipping_address: dict
    billing_address: dict | None
    notes: str | None
    payment_intent_id: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_model(cls, order: Order) -> "OrderSnapshot":
        return cls(
            id=order.id,
            order_number=order.order_number,
            owner_id=order.owner_id,
            status=OrderStatus(order.status),
            payment_status=PaymentStatus(order.payment_status),
            items=tuple(OrderItemSnapshot.from_model(item) for item in order.items),
            subtotal=order.subtotal,
            tax=order.tax,
            shipping_cost=order.shipping_cost,
            discount=order.discount,
            total=order.total,
            shipping_address=dict(order.shipping_address),
            billing_address=dict(order.billing_address) if order.billing_address else None,
            notes=order.notes,
            payment_intent_id=order.payment_intent_id,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
