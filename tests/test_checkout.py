import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import delete, func, select

from conftest import SHIPPING_ADDRESS
from services.cart_service.repository import CartRepository
from services.order_service.models import Order
from services.order_service.repository import OrderRepository
from services.order_service.service import OrderService
from services.order_service.status import OrderStatus, PaymentStatus
from services.product_service.models import Product
from services.product_service.repository import ProductRepository
from services.product_service.schemas import ProductUpdate
from services.product_service.service import ProductService
from shared.errors import (
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
    OrderNumberConflictError,
    ValidationError,
)


async def stock_of(session_factory, product_id):
    async with session_factory() as session:
        product = await ProductRepository.get_product_by_id(session, product_id)
        return product.stock_quantity


async def order_count(session_factory):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(Order))


async def cart_lines(session_factory, owner_id):
    async with session_factory() as session:
        cart = await CartRepository.get_cart(session, owner_id)
        return [(item.product_id, item.quantity) for item in cart.items] if cart else []


async def test_checkout_converts_cart_into_order(session_factory, create_product, add_to_cart, checkout):
    item_a = await create_product(name="ItemA", price=Decimal("10.00"), stock_quantity=5)
    item_b = await create_product(name="ItemB", price=Decimal("5.00"), stock_quantity=1)
    await add_to_cart("owner-1", item_a.id, 2)
    await add_to_cart("owner-1", item_b.id, 1)
    # A second shopper holds the last ItemB in their cart too
    await add_to_cart("owner-2", item_b.id, 1)

    order = await checkout("owner-1", notes="Leave at the door")

    assert order.order_number.startswith("ORD-")
    assert order.status is OrderStatus.PENDING
    assert order.payment_status is PaymentStatus.PENDING
    assert order.subtotal == Decimal("25.00")
    assert order.tax == Decimal("2.50")
    assert order.shipping_cost == Decimal("10.00")
    assert order.discount == Decimal("0.00")
    assert order.total == Decimal("37.50")
    assert order.notes == "Leave at the door"
    assert [(i.product_name, i.unit_price, i.quantity, i.subtotal) for i in order.items] == [
        ("ItemA", Decimal("10.00"), 2, Decimal("20.00")),
        ("ItemB", Decimal("5.00"), 1, Decimal("5.00")),
    ]

    assert await stock_of(session_factory, item_a.id) == 3
    assert await stock_of(session_factory, item_b.id) == 0
    assert await cart_lines(session_factory, "owner-1") == []

    with pytest.raises(InsufficientStockError) as exc:
        await checkout("owner-2")
    assert exc.value.product_id == item_b.id


async def test_billing_address_defaults_to_shipping(create_product, add_to_cart, checkout):
    product = await create_product()
    await add_to_cart("owner-1", product.id, 1)

    order = await checkout("owner-1")

    assert order.billing_address == SHIPPING_ADDRESS
    assert order.shipping_address == SHIPPING_ADDRESS


async def test_explicit_billing_address_is_kept(create_product, add_to_cart, checkout):
    product = await create_product()
    await add_to_cart("owner-1", product.id, 1)
    billing = {key: value for key, value in SHIPPING_ADDRESS.items() if key != "phone"}
    billing["city"] = "Cambridge"

    order = await checkout("owner-1", billing_address=billing)

    assert order.billing_address["city"] == "Cambridge"


async def test_empty_cart_creates_nothing(session_factory, create_product, checkout):
    product = await create_product(stock_quantity=5)

    with pytest.raises(EmptyCartError):
        await checkout("owner-without-cart")

    assert await order_count(session_factory) == 0
    assert await stock_of(session_factory, product.id) == 5


async def test_invalid_address_is_rejected_before_any_write(session_factory, create_product, add_to_cart, checkout):
    product = await create_product(stock_quantity=5)
    await add_to_cart("owner-1", product.id, 1)
    address = dict(SHIPPING_ADDRESS, phone="")

    with pytest.raises(ValidationError) as exc:
        await checkout("owner-1", shipping_address=address)

    assert exc.value.extra["errors"] == ["shipping_address.phone is required"]
    assert await order_count(session_factory) == 0
    assert await cart_lines(session_factory, "owner-1") == [(product.id, 1)]


async def test_missing_product_aborts_checkout(session_factory, create_product, add_to_cart, checkout):
    kept = await create_product(stock_quantity=5)
    gone = await create_product(stock_quantity=5)
    await add_to_cart("owner-1", kept.id, 1)
    await add_to_cart("owner-1", gone.id, 1)
    async with session_factory() as session:
        await session.execute(delete(Product).where(Product.id == gone.id))
        await session.commit()

    with pytest.raises(NotFoundError):
        await checkout("owner-1")

    assert await order_count(session_factory) == 0
    assert await stock_of(session_factory, kept.id) == 5


async def test_insufficient_stock_rolls_back_everything(session_factory, create_product, add_to_cart, checkout):
    plenty = await create_product(stock_quantity=10)
    scarce = await create_product(stock_quantity=2)
    await add_to_cart("owner-1", plenty.id, 4)
    await add_to_cart("owner-1", scarce.id, 2)
    # Someone else buys the scarce item after it went into the cart
    async with session_factory() as session:
        await ProductService.update_product(session, scarce.id, ProductUpdate(stock_quantity=1))

    with pytest.raises(InsufficientStockError):
        await checkout("owner-1")

    # The earlier decrement of `plenty` was rolled back with the rest
    assert await stock_of(session_factory, plenty.id) == 10
    assert await stock_of(session_factory, scarce.id) == 1
    assert await order_count(session_factory) == 0
    assert await cart_lines(session_factory, "owner-1") == [(plenty.id, 4), (scarce.id, 2)]


async def test_untracked_inventory_is_not_decremented(session_factory, create_product, add_to_cart, checkout):
    product = await create_product(stock_quantity=0, track_inventory=False)
    await add_to_cart("owner-1", product.id, 3)

    order = await checkout("owner-1")

    assert order.items[0].quantity == 3
    assert await stock_of(session_factory, product.id) == 0


async def test_cart_discount_is_applied(session_factory, create_product, add_to_cart, checkout):
    product = await create_product(price=Decimal("10.00"))
    await add_to_cart("owner-1", product.id, 2)
    async with session_factory() as session:
        cart = await CartRepository.get_cart(session, "owner-1")
        cart.discount = Decimal("5.00")
        await session.commit()

    order = await checkout("owner-1")

    assert order.discount == Decimal("5.00")
    # 20.00 + 2.00 tax + 10.00 shipping - 5.00
    assert order.total == Decimal("27.00")


async def test_order_number_collision_is_retried(session_factory, create_product, add_to_cart, checkout):
    product = await create_product(stock_quantity=5)
    await add_to_cart("owner-1", product.id, 1)
    first = await checkout("owner-1", number_factory=lambda: "ORD-FIXED-1")

    await add_to_cart("owner-2", product.id, 1)
    numbers = iter(["ORD-FIXED-1", "ORD-FIXED-2"])
    second = await checkout("owner-2", number_factory=lambda: next(numbers))

    assert first.order_number == "ORD-FIXED-1"
    assert second.order_number == "ORD-FIXED-2"
    assert await stock_of(session_factory, product.id) == 3


async def test_order_number_attempts_are_bounded(session_factory, create_product, add_to_cart, checkout):
    product = await create_product(stock_quantity=5)
    await add_to_cart("owner-1", product.id, 1)
    await checkout("owner-1", number_factory=lambda: "ORD-TAKEN")
    await add_to_cart("owner-2", product.id, 2)

    attempts = []

    def taken():
        attempts.append(1)
        return "ORD-TAKEN"

    with pytest.raises(OrderNumberConflictError):
        await checkout("owner-2", number_factory=taken, max_attempts=3)

    assert len(attempts) == 3
    assert await order_count(session_factory) == 1
    assert await stock_of(session_factory, product.id) == 4
    assert await cart_lines(session_factory, "owner-2") == [(product.id, 2)]


async def test_order_items_do_not_follow_catalog_changes(session_factory, create_product, add_to_cart, checkout):
    product = await create_product(name="Original", sku="SKU-ORIG", price=Decimal("10.00"))
    await add_to_cart("owner-1", product.id, 1)
    order = await checkout("owner-1")

    async with session_factory() as session:
        await ProductService.update_product(
            session, product.id, ProductUpdate(name="Renamed", sku="SKU-NEW", price=Decimal("99.00"))
        )

    async with session_factory() as session:
        reloaded = await OrderService.get_order(session, order.id, "owner-1")

    item = reloaded.items[0]
    assert (item.product_name, item.product_sku, item.unit_price) == ("Original", "SKU-ORIG", Decimal("10.00"))


async def test_persisted_order_items_cannot_be_modified(session_factory, create_product, add_to_cart, checkout):
    product = await create_product()
    await add_to_cart("owner-1", product.id, 1)
    order = await checkout("owner-1")

    async with session_factory() as session:
        persisted = await OrderRepository.get_order(session, order.id)
        with pytest.raises(AttributeError):
            persisted.items[0].unit_price = Decimal("0.01")


async def test_snapshots_are_read_only(create_product, add_to_cart, checkout):
    product = await create_product()
    await add_to_cart("owner-1", product.id, 1)
    order = await checkout("owner-1")

    with pytest.raises(AttributeError):
        order.total = Decimal("0.00")


async def test_concurrent_checkouts_never_oversell(session_factory, create_product, add_to_cart, checkout):
    product = await create_product(stock_quantity=3)
    owners = [f"buyer-{n}" for n in range(5)]
    for owner in owners:
        await add_to_cart(owner, product.id, 1)

    results = await asyncio.gather(*(checkout(owner) for owner in owners), return_exceptions=True)

    orders = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(orders) == 3
    assert len(failures) == 2
    assert all(isinstance(f, InsufficientStockError) for f in failures)
    assert len({o.order_number for o in orders}) == 3
    assert await stock_of(session_factory, product.id) == 0
    assert await order_count(session_factory) == 3


async def test_stock_is_decremented_in_product_id_order(monkeypatch, create_product, add_to_cart, checkout):
    first = await create_product(name="First")
    second = await create_product(name="Second")
    third = await create_product(name="Third")
    for product in (third, first, second):
        await add_to_cart("owner-1", product.id, 1)

    decremented = []
    original = ProductService.decrement_stock

    async def recording_decrement(db, product_id, quantity):
        decremented.append(product_id)
        return await original(db, product_id, quantity)

    monkeypatch.setattr(ProductService, "decrement_stock", staticmethod(recording_decrement))

    order = await checkout("owner-1")

    assert decremented == sorted([first.id, second.id, third.id])
    # Order lines still follow the cart
    assert [item.product_name for item in order.items] == ["Third", "First", "Second"]
