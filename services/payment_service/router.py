from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import get_current_owner

from .schemas import PaymentIntentResponse, WebhookAck
from .service import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])
# Webhooks authenticate by signature, not by bearer token
public_router = APIRouter(prefix="/payments")

@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


@router.post("/intents/{order_id}", response_model=PaymentIntentResponse)
async def create_payment_intent(
    order_id: int,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
):
    return await PaymentService.create_payment_intent(db, order_id, owner_id)


@public_router.post("/webhook", response_model=WebhookAck)
async def handle_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
):
    # Signature covers the exact bytes received, so read the raw body
    payload = await request.body()
    outcome = await PaymentService.handle_payment_event(db, payload, stripe_signature)
    return WebhookAck(received=True, outcome=outcome.value)
