"""
Applies verified provider events to orders.

Delivery is at-least-once and unordered, so every decision is made from
the order's current state rather than from the event alone:

- payment_succeeded: payment -> Paid, and order Pending -> Processing.
  Already Paid is a replay and changes nothing.
- payment_failed: payment -> Failed only while it is still Pending. A
  failure arriving after a success is ignored, never applied.

Writes go through OrderRepository.compare_and_set_status so two deliveries
racing on the same order cannot overwrite each other. Events for unknown
intents, and events that keep losing that race, are acknowledged and
reported, not raised. Only a bad signature is ever refused.
"""
import enum
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.repository import OrderRepository
from services.order_service.status import (
    OrderStatus,
    PaymentStatus,
    can_transition_payment,
    status_after_payment,
)
from shared.observability import ecomm_payment_events_total

from .gateway import EventKind, ProviderEvent
from .models import PaymentEvent
from .repository import PaymentEventRepository

logger = structlog.get_logger(__name__)

MAX_APPLY_ATTEMPTS = 3


class ReconciliationOutcome(str, enum.Enum):
    APPLIED = "applied"
    REPLAYED = "replayed"     # order already reflects the event
    IGNORED = "ignored"       # applying it would regress the order
    UNMATCHED = "unmatched"   # no order carries this intent
    UNHANDLED = "unhandled"   # event kind we do not reconcile
    DUPLICATE = "duplicate"   # provider event id seen before
    CONTENDED = "contended"   # order kept changing under us; recorded, not applied


@dataclass(frozen=True)
class Transition:
    outcome: ReconciliationOutcome
    status: OrderStatus
    payment_status: PaymentStatus


def plan_transition(kind: EventKind, status: OrderStatus, payment_status: PaymentStatus) -> Transition:
    """Pure decision: what `kind` does to an order currently in (status, payment_status)."""
    status, payment_status = OrderStatus(status), PaymentStatus(payment_status)

    if kind is EventKind.PAYMENT_SUCCEEDED:
        if payment_status is PaymentStatus.PAID:
            return Transition(ReconciliationOutcome.REPLAYED, status, payment_status)
        if not can_transition_payment(payment_status, PaymentStatus.PAID):
            return Transition(ReconciliationOutcome.IGNORED, status, payment_status)
        return Transition(ReconciliationOutcome.APPLIED, status_after_payment(status), PaymentStatus.PAID)

    if kind is EventKind.PAYMENT_FAILED:
        if payment_status is PaymentStatus.FAILED:
            return Transition(ReconciliationOutcome.REPLAYED, status, payment_status)
        if payment_status is not PaymentStatus.PENDING:
            return Transition(ReconciliationOutcome.IGNORED, status, payment_status)
        return Transition(ReconciliationOutcome.APPLIED, status, PaymentStatus.FAILED)

    if kind is EventKind.OTHER:
        return Transition(ReconciliationOutcome.UNHANDLED, status, payment_status)

    raise ValueError(f"Unknown event kind: {kind!r}")


class PaymentReconciler:

    @staticmethod
    async def apply(db: AsyncSession, event: ProviderEvent) -> ReconciliationOutcome:
        log = logger.bind(event_id=event.event_id, event_type=event.event_type, intent_id=event.intent_id)

        if event.event_id and await PaymentEventRepository.get_by_provider_event_id(db, event.event_id):
            return PaymentReconciler._report(log, event, ReconciliationOutcome.DUPLICATE)

        order_id = None
        if event.kind is EventKind.OTHER:
            outcome = ReconciliationOutcome.UNHANDLED
        else:
            order = await OrderRepository.get_by_payment_intent(db, event.intent_id) if event.intent_id else None
            if order is None:
                outcome = ReconciliationOutcome.UNMATCHED
            else:
                order_id = order.id
                outcome = await PaymentReconciler._apply_to_order(db, event.kind, order)

        await PaymentEventRepository.record(
            db,
            PaymentEvent(
                # A contended event stays open so the provider's redelivery is applied
                provider_event_id=None if outcome is ReconciliationOutcome.CONTENDED else event.event_id,
                event_type=event.event_type,
                kind=event.kind.value,
                intent_id=event.intent_id,
                order_id=order_id,
                outcome=outcome.value,
            ),
        )
        try:
            await db.commit()
        except IntegrityError:
            # The same event id was committed by a concurrent delivery
            await db.rollback()
            outcome = ReconciliationOutcome.DUPLICATE

        return PaymentReconciler._report(log.bind(order_id=order_id), event, outcome)

    @staticmethod
    async def _apply_to_order(db: AsyncSession, kind: EventKind, order) -> ReconciliationOutcome:
        for _ in range(MAX_APPLY_ATTEMPTS):
            transition = plan_transition(kind, order.status, order.payment_status)
            if transition.outcome is not ReconciliationOutcome.APPLIED:
                return transition.outcome

            if await OrderRepository.compare_and_set_status(
                db,
                order.id,
                expected_status=order.status,
                expected_payment_status=order.payment_status,
                status=transition.status,
                payment_status=transition.payment_status,
            ):
                return ReconciliationOutcome.APPLIED

            # Lost a race: decide again from what the other writer left behind
            order = await OrderRepository.get_order(db, order.id, fresh=True, lock=True)

        return ReconciliationOutcome.CONTENDED

    @staticmethod
    def _report(log, event: ProviderEvent, outcome: ReconciliationOutcome) -> ReconciliationOutcome:
        ecomm_payment_events_total.labels(kind=event.kind.value, outcome=outcome.value).inc()
        if outcome is ReconciliationOutcome.UNMATCHED:
            log.warning("payment_event_unmatched")
        elif outcome is ReconciliationOutcome.IGNORED:
            log.warning("payment_event_ignored", reason="would regress order state")
        elif outcome is ReconciliationOutcome.CONTENDED:
            log.warning("payment_event_contended", attempts=MAX_APPLY_ATTEMPTS)
        else:
            log.info("payment_event_reconciled", outcome=outcome.value)
        return outcome
