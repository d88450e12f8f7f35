import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.repository import OrderRepository
from services.order_service.status import PaymentStatus
from shared.config.settings import STRIPE_CURRENCY
from shared.errors import AlreadyPaidError, AuthenticationError, ExternalServiceError, NotFoundError
from shared.observability import ecomm_payment_intents_total, ecomm_webhook_rejected_total
from shared.pricing import to_minor_units

from .gateway import PaymentGateway, PaymentIntent, get_gateway
from .reconciliation import PaymentReconciler, ReconciliationOutcome

logger = structlog.get_logger(__name__)


class PaymentService:

    @staticmethod
    async def create_payment_intent(
        db: AsyncSession,
        order_id: int,
        owner_id: str | None = None,
        gateway: PaymentGateway | None = None,
        currency: str = STRIPE_CURRENCY,
    ) -> PaymentIntent:
        gateway = gateway or get_gateway()

        order = await OrderRepository.get_order(db, order_id, owner_id, fresh=True)
        if not order:
            raise NotFoundError("Order not found")
        if PaymentStatus(order.payment_status) is PaymentStatus.PAID:
            raise AlreadyPaidError("Order is already paid", order_id=order.id)

        amount = to_minor_units(order.total)
        metadata = {"order_id": order.id, "order_number": order.order_number}

        # End the read transaction before calling out; no database state is held across the network call
        await db.commit()

        try:
            intent = await gateway.create_intent(amount, currency, metadata)
        except ExternalServiceError as e:
            ecomm_payment_intents_total.labels(status="failed").inc()
            logger.error("payment_intent_failed", order_id=order.id, error=e.message)
            raise

        order.payment_intent_id = intent.intent_id
        await OrderRepository.save(db, order)

        ecomm_payment_intents_total.labels(status="created").inc()
        logger.info(
            "payment_intent_created",
            order_id=order.id,
            order_number=order.order_number,
            intent_id=intent.intent_id,
            amount=amount,
            currency=currency,
        )
        return intent

    @staticmethod
    async def handle_payment_event(
        db: AsyncSession,
        payload: bytes,
        signature: str | None,
        gateway: PaymentGateway | None = None,
    ) -> ReconciliationOutcome:
        """
        Verifies and reconciles one webhook delivery. A bad signature raises
        AuthenticationError and touches nothing; everything else, including
        events for unknown intents, is acknowledged.
        """
        gateway = gateway or get_gateway()
        try:
            event = gateway.verify_signed_event(payload, signature)
        except AuthenticationError as e:
            ecomm_webhook_rejected_total.inc()
            logger.warning("webhook_rejected", reason=e.message)
            raise

        return await PaymentReconciler.apply(db, event)
