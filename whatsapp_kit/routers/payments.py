from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from whatsapp_kit.dependencies import get_payment_service
from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.schemas.payment import PaymentRequest, PaymentRequestResponse, PaymentWebhookResponse
from whatsapp_kit.services.payment_service import PaymentError, PaymentService

logger = get_logger("payments_router")

router = APIRouter(tags=["payments"])


@router.post("/payments/request", response_model=PaymentRequestResponse)
async def request_payment(request: PaymentRequest, payments: PaymentService = Depends(get_payment_service)):
    try:
        response = await payments.request(
            request.to,
            request.amount,
            request.currency,
            request.description,
            request.metadata,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentError as e:
        logger.error(f"Payment request failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return PaymentRequestResponse(payment_id=response.payment_id, url=response.url, status=response.status)


@router.post("/webhook/payments", response_model=PaymentWebhookResponse)
async def handle_payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    payments: PaymentService = Depends(get_payment_service),
):
    """Stripe webhook; needs the raw body for signature verification."""
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="No signature")

    raw = await request.body()
    try:
        message = await payments.handle_webhook(raw, stripe_signature)
    except PaymentError as e:
        logger.warning(f"Payment webhook rejected: {e}")
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")

    return PaymentWebhookResponse(received=True, notified=message is not None)
