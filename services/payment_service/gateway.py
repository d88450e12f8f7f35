"""
Payment provider port and adapters.

- StripeGateway calls Stripe through the official SDK (async, over httpx).
- FakeGateway never leaves the process; dev and tests use it.

Webhook verification is shared by both: the SDK checks the
`Stripe-Signature` header, then the body is parsed into a ProviderEvent.

get_gateway() / set_gateway() pick the active adapter. The provider call
is the caller's to retry: failures surface as ExternalServiceError.
"""
import enum
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from uuid import uuid4

import stripe
import structlog

from shared.config.settings import (
    PAYMENT_GATEWAY,
    PAYMENT_PROVIDER_TIMEOUT,
    STRIPE_API_BASE,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    WEBHOOK_TOLERANCE_SECONDS,
)
from shared.errors import AuthenticationError, ExternalServiceError

logger = structlog.get_logger(__name__)


class EventKind(str, enum.Enum):
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    OTHER = "other"


# Provider event type -> kind we reconcile
PROVIDER_EVENT_KINDS = {
    "payment_intent.succeeded": EventKind.PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": EventKind.PAYMENT_FAILED,
}


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_secret: str


@dataclass(frozen=True)
class ProviderEvent:
    kind: EventKind
    event_type: str
    intent_id: str | None
    event_id: str | None
    raw: dict = field(default_factory=dict, compare=False)


def parse_event(payload: bytes) -> ProviderEvent:
    """
    Turns a verified webhook body into a ProviderEvent. A body that is not
    a JSON object still came from the provider, so it becomes an OTHER
    event instead of an error.
    """
    try:
        body = json.loads(payload)
    except (ValueError, UnicodeDecodeError):
        body = None
    if not isinstance(body, dict):
        logger.warning("webhook_payload_unparseable", size=len(payload))
        return ProviderEvent(kind=EventKind.OTHER, event_type="", intent_id=None, event_id=None)

    event_type = str(body.get("type") or "")
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    data_object = data.get("object") if isinstance(data.get("object"), dict) else {}
    return ProviderEvent(
        kind=PROVIDER_EVENT_KINDS.get(event_type, EventKind.OTHER),
        event_type=event_type,
        intent_id=data_object.get("id"),
        event_id=body.get("id"),
        raw=body,
    )


class PaymentGateway(ABC):
    """Abstract payment provider interface."""

    def __init__(self, webhook_secret: str, tolerance: int = WEBHOOK_TOLERANCE_SECONDS):
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    @abstractmethod
    async def create_intent(self, amount_minor_units: int, currency: str, metadata: dict) -> PaymentIntent:
        """Asks the provider for a payment intent of `amount_minor_units` (e.g. cents)."""
        ...

    def verify_signed_event(self, payload: bytes, signature: str | None, secret: str | None = None) -> ProviderEvent:
        """Checks the signature, then parses. Raises AuthenticationError on a bad signature."""
        if not signature:
            raise AuthenticationError("Missing webhook signature")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                secret or self.webhook_secret,
                self.tolerance,
            )
        except UnicodeDecodeError:
            raise AuthenticationError("Webhook payload is not valid UTF-8")
        except stripe.SignatureVerificationError as e:
            raise AuthenticationError(f"Webhook signature verification failed: {e.user_message or e}")
        return parse_event(payload)


class StripeGateway(PaymentGateway):

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        api_base: str = STRIPE_API_BASE,
        timeout: float = PAYMENT_PROVIDER_TIMEOUT,
        tolerance: int = WEBHOOK_TOLERANCE_SECONDS,
        client: stripe.StripeClient | None = None,
    ):
        super().__init__(webhook_secret, tolerance)
        # No SDK retries: a failed call surfaces to the caller
        self.client = client or stripe.StripeClient(
            api_key,
            base_addresses={"api": api_base},
            http_client=stripe.HTTPXClient(timeout=timeout),
            max_network_retries=0,
        )

    async def create_intent(self, amount_minor_units: int, currency: str, metadata: dict) -> PaymentIntent:
        params = {
            "amount": amount_minor_units,
            "currency": currency,
            "metadata": {key: str(value) for key, value in metadata.items()},
        }
        try:
            intent = await self.client.payment_intents.create_async(params=params)
        except stripe.StripeError as e:
            extra = {"provider_status": e.http_status} if e.http_status else {}
            raise ExternalServiceError(f"Payment provider error: {e.user_message or e}", **extra)

        if not intent.get("id") or not intent.get("client_secret"):
            raise ExternalServiceError("Payment provider returned an incomplete intent")
        return PaymentIntent(intent_id=intent["id"], client_secret=intent["client_secret"])


class FakeGateway(PaymentGateway):
    """Configurable in-process gateway; records every call in `calls`."""

    def __init__(self, webhook_secret: str = STRIPE_WEBHOOK_SECRET, tolerance: int = WEBHOOK_TOLERANCE_SECONDS):
        super().__init__(webhook_secret, tolerance)
        self.should_succeed = True
        self.failure_reason = "Provider unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Provider unavailable"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    async def create_intent(self, amount_minor_units: int, currency: str, metadata: dict) -> PaymentIntent:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount_minor_units,
                "currency": currency,
                "metadata": dict(metadata),
            }
        )
        if not self.should_succeed:
            raise ExternalServiceError(self.failure_reason)

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        return PaymentIntent(intent_id=intent_id, client_secret=f"{intent_id}_secret_{uuid4().hex[:12]}")


_current_gateway: PaymentGateway | None = None


def _build_default_gateway() -> PaymentGateway:
    if PAYMENT_GATEWAY == "stripe":
        if not STRIPE_SECRET_KEY:
            raise ValueError("PAYMENT_GATEWAY=stripe requires STRIPE_SECRET_KEY")
        return StripeGateway(STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET)
    logger.warning("using_fake_payment_gateway")
    return FakeGateway(STRIPE_WEBHOOK_SECRET)


def get_gateway() -> PaymentGateway:
    """Return the active payment gateway, built from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _build_default_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway):
    """Override the active payment gateway (tests, local tooling)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway():
    global _current_gateway
    _current_gateway = None
