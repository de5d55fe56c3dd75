from typing import Dict, Optional

from pydantic import BaseModel, Field


class PaymentRequest(BaseModel):
    to: str
    amount: float = Field(..., gt=0, description="Major units, e.g. 10.50")
    currency: str = Field(..., min_length=3, max_length=3)
    description: str
    metadata: Optional[Dict[str, str]] = None


class PaymentRequestResponse(BaseModel):
    payment_id: str
    url: str
    status: str = "pending"


class PaymentWebhookResponse(BaseModel):
    received: bool
    notified: bool = False
