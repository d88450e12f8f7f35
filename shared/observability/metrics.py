from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_checkout_total = Counter(
    "ecomm_checkout_total",
    "Total checkouts processed",
    ["status"] # Labels: 'success', 'empty_cart', 'insufficient_stock', ...
)

ecomm_checkout_duration_seconds = Histogram(
    "ecomm_checkout_duration_seconds",
    "Checkout duration in seconds"
)

ecomm_order_number_collisions_total = Counter(
    "ecomm_order_number_collisions_total",
    "Order numbers regenerated after a uniqueness conflict"
)

ecomm_payment_intents_total = Counter(
    "ecomm_payment_intents_total",
    "Payment intents requested from the provider",
    ["status"] # Labels: 'created', 'failed'
)

ecomm_payment_events_total = Counter(
    "ecomm_payment_events_total",
    "Verified payment provider events",
    ["kind", "outcome"] # Labels: kind='payment_succeeded', outcome='applied' | 'unmatched' | ...
)

ecomm_webhook_rejected_total = Counter(
    "ecomm_webhook_rejected_total",
    "Webhook deliveries rejected because the signature did not verify"
)
