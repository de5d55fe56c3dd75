from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class ChatRequest(BaseModel):
    from_: str = Field(..., validation_alias=AliasChoices("from", "from_"))
    message: str
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)


class ChatResponse(BaseModel):
    message: str
    model: str
    tokens_used: int
    cost: float = 0.0
    conversation_id: Optional[str] = None


class WebhookResponse(BaseModel):
    success: bool
    message: str
    event_type: Optional[str] = None
    replies_sent: int = 0
