"""
Cart -> Order conversion.

Everything from the order header insert to clearing the cart runs in one
database transaction: either the order, its items, the stock decrements
and the emptied cart all commit, or none of them do. Stock is taken with a
guarded UPDATE (see ProductRepository.decrement_stock_if_available) so
concurrent checkouts on the same product cannot oversell it.

Nothing here talks to the payment provider; payment intents are created
afterwards by the payment service.
"""
import secrets
import time

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.cart_service.repository import CartRepository
from services.cart_service.service import CartService
from services.product_service.repository import ProductRepository
from services.product_service.service import ProductService
from shared.config.settings import ORDER_NUMBER_MAX_ATTEMPTS
from shared.errors import DomainError, EmptyCartError, NotFoundError, OrderNumberConflictError
from shared.observability import (
    ecomm_checkout_duration_seconds,
    ecomm_checkout_total,
    ecomm_order_number_collisions_total,
)
from shared.pricing import compute_order_totals, line_subtotal, money
from shared.validation import validate_address, validate_notes

from .aggregate import OrderSnapshot
from .models import Order, OrderItem
from .repository import OrderRepository
from .status import OrderStatus, PaymentStatus

logger = structlog.get_logger(__name__)


def generate_order_number() -> str:
    """ORD-<microsecond timestamp>-<6 random digits>"""
    return f"ORD-{time.time_ns() // 1_000}-{secrets.randbelow(1_000_000):06d}"


class _OrderNumberTaken(Exception):
    pass


class CheckoutService:

    @staticmethod
    async def checkout(
        db: AsyncSession,
        owner_id: str,
        shipping_address: dict,
        billing_address: dict | None = None,
        notes: str | None = None,
        number_factory=generate_order_number,
        max_attempts: int = ORDER_NUMBER_MAX_ATTEMPTS,
    ) -> OrderSnapshot:
        result = validate_address(shipping_address, "shipping_address", require_phone=True)
        if billing_address:
            result = result.merge(validate_address(billing_address, "billing_address"))
        result.merge(validate_notes(notes)).raise_for_errors()
        billing_address = billing_address or shipping_address

        started = time.perf_counter()
        try:
            for attempt in range(1, max_attempts + 1):
                order_number = number_factory()
                try:
                    order = await CheckoutService._place_order(
                        db, owner_id, order_number, shipping_address, billing_address, notes
                    )
                except _OrderNumberTaken:
                    ecomm_order_number_collisions_total.inc()
                    logger.warning("order_number_collision", order_number=order_number, attempt=attempt)
                    continue

                ecomm_checkout_total.labels(status="success").inc()
                logger.info(
                    "checkout_completed",
                    owner_id=owner_id,
                    order_id=order.id,
                    order_number=order.order_number,
                    total=str(order.total),
                    items=len(order.items),
                )
                return order

            raise OrderNumberConflictError(
                f"Could not allocate a unique order number after {max_attempts} attempts"
            )
        except DomainError as exc:
            ecomm_checkout_total.labels(status=exc.kind).inc()
            logger.info("checkout_rejected", owner_id=owner_id, reason=exc.kind, detail=exc.message)
            raise
        finally:
            ecomm_checkout_duration_seconds.observe(time.perf_counter() - started)

    @staticmethod
    async def _place_order(
        db: AsyncSession,
        owner_id: str,
        order_number: str,
        shipping_address: dict,
        billing_address: dict,
        notes: str | None,
    ) -> OrderSnapshot:
        # 1. Cart with a snapshot of every referenced product
        cart = await CartRepository.get_cart(db, owner_id, fresh=True)
        if not cart or not cart.items:
            raise EmptyCartError("Cart is empty")

        products = await ProductRepository.get_products_by_ids(db, {item.product_id for item in cart.items})
        for item in cart.items:
            if item.product_id not in products:
                raise NotFoundError(f"Product {item.product_id} not found", product_id=item.product_id)

        # 2. Totals are recomputed from the items, never copied from cart.total
        totals = compute_order_totals(((item.price, item.quantity) for item in cart.items), cart.discount)

        order = Order(
            order_number=order_number,
            owner_id=owner_id,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping_cost=totals.shipping,
            discount=totals.discount,
            total=totals.total,
            shipping_address=shipping_address,
            billing_address=billing_address,
            notes=notes,
            items=[],
        )

        # 3. Atomic unit: header, stock, items, cart
        try:
            await OrderRepository.add_order(db, order)
        except IntegrityError:
            await db.rollback()
            raise _OrderNumberTaken(order_number)

        try:
            # Row locks are taken in product_id order so two carts holding the
            # same products in opposite order cannot deadlock each other
            decremented = {}
            for item in sorted(cart.items, key=lambda line: line.product_id):
                decremented[item.product_id] = await ProductService.decrement_stock(
                    db, item.product_id, item.quantity
                )

            for item in cart.items:
                product = decremented[item.product_id]
                order.items.append(
                    OrderItem(
                        product_id=product.id,
                        product_name=product.name,
                        product_sku=product.sku,
                        unit_price=money(item.price),
                        quantity=item.quantity,
                        subtotal=line_subtotal(item.price, item.quantity),
                    )
                )

            await CartService.empty(db, cart)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return OrderSnapshot.from_model(order)
