from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List

class CartItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)

class CartItemUpdate(BaseModel):
    quantity: int = Field(gt=0)

class CartItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int
    price: Decimal

    class Config:
        from_attributes = True

class CartResponse(BaseModel):
    id: int
    owner_id: str
    items: List[CartItemResponse] = []
    discount: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    class Config:
        from_attributes = True
