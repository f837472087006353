from typing import Optional
from pydantic import BaseModel, ConfigDict

class PaymentIntentCreateRequest(BaseModel):
    # Unknown keys such as "amount" are dropped: the charge comes from the order row
    model_config = ConfigDict(extra="ignore")

    orderId: Optional[str] = None

class PaymentIntentCreateResponse(BaseModel):
    success: bool = True
    clientSecret: str

class WebhookAck(BaseModel):
    received: bool = True
