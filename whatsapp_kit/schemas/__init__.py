from whatsapp_kit.schemas.agent import ChatRequest, ChatResponse, WebhookResponse
from whatsapp_kit.schemas.otp import OTPResponse, OTPSendRequest, OTPVerifyRequest
from whatsapp_kit.schemas.payment import PaymentRequest, PaymentRequestResponse, PaymentWebhookResponse

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "WebhookResponse",
    "OTPSendRequest",
    "OTPVerifyRequest",
    "OTPResponse",
    "PaymentRequest",
    "PaymentRequestResponse",
    "PaymentWebhookResponse",
]
