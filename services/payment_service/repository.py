from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from .models import PaymentEvent

class PaymentEventRepository:
    @staticmethod
    async def record(db: AsyncSession, event: PaymentEvent):
        """Stages the log row; committed together with the reconciliation it describes."""
        db.add(event)
        return event

    @staticmethod
    async def get_by_provider_event_id(db: AsyncSession, provider_event_id: str):
        result = await db.execute(
            select(PaymentEvent).where(PaymentEvent.provider_event_id == provider_event_id)
        )
        return result.scalars().first()

    @staticmethod
    async def list_for_intent(db: AsyncSession, intent_id: str):
        result = await db.execute(
            select(PaymentEvent).where(PaymentEvent.intent_id == intent_id).order_by(PaymentEvent.id)
        )
        return result.scalars().all()
