from decimal import Decimal

import pytest

from services.cart_service.service import CartService
from shared.errors import InsufficientStockError, NotFoundError, UnavailableError, ValidationError


async def test_cart_is_created_lazily(db):
    cart = await CartService.get_cart(db, "owner-lazy")

    assert cart.id is not None
    assert cart.items == []
    assert cart.total == Decimal("0.00")

    again = await CartService.get_cart(db, "owner-lazy")
    assert again.id == cart.id


async def test_add_item_snapshots_price_and_updates_totals(db, create_product):
    product = await create_product(price=Decimal("10.00"), stock_quantity=5)

    cart = await CartService.add_item(db, "owner-1", product.id, 2)

    assert len(cart.items) == 1
    assert cart.items[0].price == Decimal("10.00")
    assert cart.subtotal == Decimal("20.00")
    assert cart.tax == Decimal("2.00")
    assert cart.total == Decimal("22.00")


async def test_adding_same_product_merges_lines(db, create_product):
    product = await create_product(stock_quantity=5)

    await CartService.add_item(db, "owner-1", product.id, 2)
    cart = await CartService.add_item(db, "owner-1", product.id, 3)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5


async def test_stock_is_checked_against_resulting_quantity(db, create_product):
    product = await create_product(stock_quantity=5)
    await CartService.add_item(db, "owner-1", product.id, 3)

    with pytest.raises(InsufficientStockError) as exc:
        await CartService.add_item(db, "owner-1", product.id, 3)

    assert exc.value.product_id == product.id
    cart = await CartService.get_cart(db, "owner-1")
    assert cart.items[0].quantity == 3


async def test_untracked_products_ignore_stock(db, create_product):
    product = await create_product(stock_quantity=0, track_inventory=False)

    cart = await CartService.add_item(db, "owner-1", product.id, 50)

    assert cart.items[0].quantity == 50


async def test_unknown_product(db):
    with pytest.raises(NotFoundError):
        await CartService.add_item(db, "owner-1", 9999, 1)


async def test_inactive_product(db, create_product):
    product = await create_product(is_active=False)

    with pytest.raises(UnavailableError):
        await CartService.add_item(db, "owner-1", product.id, 1)


@pytest.mark.parametrize("quantity", [0, -3])
async def test_rejects_non_positive_quantity(db, create_product, quantity):
    product = await create_product()

    with pytest.raises(ValidationError):
        await CartService.add_item(db, "owner-1", product.id, quantity)


async def test_update_and_remove_item(db, create_product):
    first = await create_product(price=Decimal("4.00"))
    second = await create_product(price=Decimal("6.00"))
    await CartService.add_item(db, "owner-1", first.id, 1)
    cart = await CartService.add_item(db, "owner-1", second.id, 1)
    first_item, second_item = cart.items

    cart = await CartService.update_item(db, "owner-1", first_item.id, 4)
    assert cart.subtotal == Decimal("22.00")

    cart = await CartService.remove_item(db, "owner-1", second_item.id)
    assert [item.product_id for item in cart.items] == [first.id]
    assert cart.subtotal == Decimal("16.00")


async def test_update_beyond_stock(db, create_product):
    product = await create_product(stock_quantity=2)
    cart = await CartService.add_item(db, "owner-1", product.id, 1)

    with pytest.raises(InsufficientStockError):
        await CartService.update_item(db, "owner-1", cart.items[0].id, 3)


async def test_items_are_scoped_to_their_owner(db, create_product):
    product = await create_product()
    cart = await CartService.add_item(db, "owner-1", product.id, 1)

    with pytest.raises(NotFoundError):
        await CartService.remove_item(db, "owner-2", cart.items[0].id)


async def test_clear_cart(db, create_product):
    product = await create_product()
    await CartService.add_item(db, "owner-1", product.id, 2)

    cart = await CartService.clear_cart(db, "owner-1")

    assert cart.items == []
    assert cart.subtotal == Decimal("0.00")
    assert cart.total == Decimal("0.00")
