from pydantic import BaseModel

class PaymentIntentResponse(BaseModel):
    intent_id: str
    client_secret: str

    class Config:
        from_attributes = True

class WebhookAck(BaseModel):
    received: bool
    outcome: str
