import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.errors import InsufficientStockError, NotFoundError, UnavailableError
from shared.pricing import ZERO, CartTotals, compute_cart_totals
from shared.validation import validate_quantity

from .models import Cart, CartItem
from .repository import CartRepository

logger = structlog.get_logger(__name__)


class CartService:

    @staticmethod
    def recompute_totals(cart: Cart) -> CartTotals:
        """Refreshes the cart's subtotal/tax/total from its current items."""
        totals = compute_cart_totals(
            ((item.price, item.quantity) for item in cart.items),
            cart.discount if cart.items else ZERO,
        )
        cart.subtotal = totals.subtotal
        cart.tax = totals.tax
        cart.discount = totals.discount
        cart.total = totals.total
        return totals

    @staticmethod
    async def get_or_create_cart(db: AsyncSession, owner_id: str) -> Cart:
        cart = await CartRepository.get_cart(db, owner_id)
        if cart:
            return cart

        cart = Cart(owner_id=owner_id, discount=ZERO, subtotal=ZERO, tax=ZERO, total=ZERO, items=[])
        try:
            cart = await CartRepository.create_cart(db, cart)
        except IntegrityError:
            # A concurrent request created it first
            await db.rollback()
            cart = await CartRepository.get_cart(db, owner_id, fresh=True)
        else:
            logger.info("cart_created", owner_id=owner_id, cart_id=cart.id)
        return cart

    @staticmethod
    async def get_cart(db: AsyncSession, owner_id: str) -> Cart:
        cart = await CartService.get_or_create_cart(db, owner_id)
        CartService.recompute_totals(cart)
        return await CartRepository.save(db, cart)

    @staticmethod
    async def add_item(db: AsyncSession, owner_id: str, product_id: int, quantity: int) -> Cart:
        validate_quantity(quantity).raise_for_errors()

        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_active:
            raise UnavailableError(f"Product {product.name} is not available", product_id=product.id)

        cart = await CartService.get_or_create_cart(db, owner_id)
        existing = cart.find_item_for_product(product_id)
        resulting_quantity = quantity + (existing.quantity if existing else 0)

        if not product.has_stock_for(resulting_quantity):
            raise InsufficientStockError(product.id, product.name)

        if existing:
            existing.quantity = resulting_quantity
            existing.price = product.price
        else:
            await CartRepository.add_item(
                db, cart, CartItem(product_id=product.id, quantity=quantity, price=product.price)
            )

        CartService.recompute_totals(cart)
        return await CartRepository.save(db, cart)

    @staticmethod
    async def update_item(db: AsyncSession, owner_id: str, item_id: int, quantity: int) -> Cart:
        validate_quantity(quantity).raise_for_errors()

        cart = await CartService.get_or_create_cart(db, owner_id)
        item = cart.find_item(item_id)
        if not item:
            raise NotFoundError("Cart item not found")

        product = await ProductRepository.get_product_by_id(db, item.product_id)
        if not product:
            raise NotFoundError(f"Product {item.product_id} not found")
        if not product.has_stock_for(quantity):
            raise InsufficientStockError(product.id, product.name)

        item.quantity = quantity
        CartService.recompute_totals(cart)
        return await CartRepository.save(db, cart)

    @staticmethod
    async def remove_item(db: AsyncSession, owner_id: str, item_id: int) -> Cart:
        cart = await CartService.get_or_create_cart(db, owner_id)
        item = cart.find_item(item_id)
        if not item:
            raise NotFoundError("Cart item not found")

        await CartRepository.remove_item(db, cart, item)
        CartService.recompute_totals(cart)
        return await CartRepository.save(db, cart)

    @staticmethod
    async def empty(db: AsyncSession, cart: Cart):
        """Removes all items and zeroes every total. Does not commit."""
        await CartRepository.clear_items(db, cart)
        cart.discount = ZERO
        cart.subtotal = ZERO
        cart.tax = ZERO
        cart.total = ZERO

    @staticmethod
    async def clear_cart(db: AsyncSession, owner_id: str) -> Cart:
        cart = await CartService.get_or_create_cart(db, owner_id)
        await CartService.empty(db, cart)
        return await CartRepository.save(db, cart)
