from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from shared.config.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class PaymentEvent(Base):
    """Log of every verified provider event and what reconciliation did with it."""
    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True, index=True)
    provider_event_id = Column(String, nullable=True, unique=True) # redelivery of the same id is a duplicate
    event_type = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    intent_id = Column(String, nullable=True, index=True)
    order_id = Column(Integer, nullable=True)
    outcome = Column(String, nullable=False) # applied, replayed, ignored, unmatched, unhandled
    received_at = Column(DateTime(timezone=True), default=_utcnow)
