from .setup import setup_observability
from .metrics import (
    ecomm_checkout_total,
    ecomm_checkout_duration_seconds,
    ecomm_order_number_collisions_total,
    ecomm_payment_intents_total,
    ecomm_payment_events_total,
    ecomm_webhook_rejected_total,
)
