"""
Money arithmetic for carts and orders.

All amounts are Decimal, quantized to cents with ROUND_HALF_UP. The tax
rate and shipping fee are flat constants.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

TAX_RATE = Decimal("0.10")
SHIPPING_FEE = Decimal("10.00")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_subtotal(price, quantity: int) -> Decimal:
    return money(money(price) * quantity)


def to_minor_units(amount) -> int:
    """Converts a major-unit amount (e.g. dollars) into integer minor units (cents)."""
    return int((money(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal


def compute_cart_totals(lines: Iterable[tuple], discount=ZERO) -> CartTotals:
    """
    `lines` are (price, quantity) pairs.
    total = subtotal + tax - discount
    """
    subtotal = money(sum((line_subtotal(price, qty) for price, qty in lines), ZERO))
    tax = money(subtotal * TAX_RATE)
    discount = money(discount)
    return CartTotals(subtotal=subtotal, tax=tax, discount=discount, total=subtotal + tax - discount)


def compute_order_totals(lines: Iterable[tuple], discount=ZERO, shipping=SHIPPING_FEE) -> OrderTotals:
    """total = subtotal + tax + shipping - discount"""
    cart = compute_cart_totals(lines, discount)
    shipping = money(shipping)
    return OrderTotals(
        subtotal=cart.subtotal,
        tax=cart.tax,
        shipping=shipping,
        discount=cart.discount,
        total=cart.subtotal + cart.tax + shipping - cart.discount,
    )
