from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from .status import OrderStatus, PaymentStatus


class AddressIn(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    address_line1: str = Field(min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)


class ShippingAddressIn(AddressIn):
    phone: str = Field(min_length=1)


class CheckoutRequest(BaseModel):
    shipping_address: ShippingAddressIn
    billing_address: Optional[AddressIn] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: str
    product_sku: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    owner_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    items: List[OrderItemResponse] = []
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal
    shipping_address: dict
    billing_address: Optional[dict]
    notes: Optional[str]
    payment_intent_id: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True
