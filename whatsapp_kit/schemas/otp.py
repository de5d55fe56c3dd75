from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OTPSendRequest(BaseModel):
    to: str = Field(..., description="E.164 phone number, e.g. +15550102030")
    brand: Optional[str] = None
    template: Optional[str] = None
    expires_in: Optional[int] = Field(default=None, gt=0)


class OTPVerifyRequest(BaseModel):
    to: str
    code: str


class OTPResponse(BaseModel):
    success: bool
    session_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    attempts_remaining: Optional[int] = None
    error: Optional[str] = None
