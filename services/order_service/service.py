import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import NotFoundError

from .aggregate import OrderSnapshot
from .models import Order
from .repository import OrderRepository
from .status import (
    OrderStatus,
    PaymentStatus,
    order_transition,
    payment_transition,
    status_after_payment,
)

logger = structlog.get_logger(__name__)


class OrderService:

    @staticmethod
    async def _load(db: AsyncSession, order_id: int, owner_id: str | None = None) -> Order:
        order = await OrderRepository.get_order(db, order_id, owner_id, fresh=True)
        if not order:
            raise NotFoundError("Order not found")
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int, owner_id: str | None = None) -> OrderSnapshot:
        """Owner-scoped when owner_id is given: another owner's order is reported as missing."""
        return OrderSnapshot.from_model(await OrderService._load(db, order_id, owner_id))

    @staticmethod
    async def list_orders(db: AsyncSession, owner_id: str) -> list[OrderSnapshot]:
        orders = await OrderRepository.list_for_owner(db, owner_id)
        return [OrderSnapshot.from_model(order) for order in orders]

    @staticmethod
    async def update_status(db: AsyncSession, order_id: int, target: OrderStatus) -> OrderSnapshot:
        order = await OrderService._load(db, order_id)
        previous = order.status

        order.status = order_transition(order.status, target, order.payment_status)
        if order.status is OrderStatus.REFUNDED:
            order.payment_status = payment_transition(order.payment_status, PaymentStatus.REFUNDED)

        await OrderRepository.save(db, order)
        logger.info(
            "order_status_updated",
            order_id=order.id,
            previous=OrderStatus(previous).value,
            status=order.status.value,
        )
        return OrderSnapshot.from_model(order)

    @staticmethod
    async def update_payment_status(db: AsyncSession, order_id: int, target: PaymentStatus) -> OrderSnapshot:
        order = await OrderService._load(db, order_id)
        previous = order.payment_status

        order.payment_status = payment_transition(order.payment_status, target)
        if order.payment_status is PaymentStatus.PAID:
            order.status = status_after_payment(order.status)

        await OrderRepository.save(db, order)
        logger.info(
            "order_payment_status_updated",
            order_id=order.id,
            previous=PaymentStatus(previous).value,
            payment_status=order.payment_status.value,
            status=order.status.value,
        )
        return OrderSnapshot.from_model(order)
