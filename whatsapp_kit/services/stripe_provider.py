import asyncio
import json
from typing import Any, Dict, Optional, Union

import stripe

from whatsapp_kit.config import ConfigurationError
from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.services.payment_service import CheckoutSession, PaymentEvent, PaymentObject, PaymentProvider

logger = get_logger("stripe_provider")


def _payment_object(obj: Dict[str, Any]) -> PaymentObject:
    kind = obj.get("object") or ""
    if kind == "checkout.session":
        amount, status = obj.get("amount_total"), obj.get("payment_status")
    else:
        amount, status = obj.get("amount"), obj.get("status")
    return PaymentObject(
        kind=kind,
        id=obj.get("id") or "",
        amount_minor=int(amount or 0),
        currency=obj.get("currency") or "",
        status=status,
        metadata={str(k): str(v) for k, v in (obj.get("metadata") or {}).items()},
    )


class StripeProvider(PaymentProvider):
    """Stripe Checkout sessions and signed webhook events."""

    API_VERSION = "2024-04-10"

    def __init__(self, secret_key: str, webhook_secret: Optional[str] = None):
        self.webhook_secret = webhook_secret
        self._client = stripe.StripeClient(secret_key, stripe_version=self.API_VERSION)

    async def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        description: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        params = {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": description},
                        "unit_amount": amount_minor,
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
        }
        # the stripe client is blocking
        session = await asyncio.to_thread(self._client.checkout.sessions.create, params=params)
        logger.info("Checkout session created", extra={"context": {"session_id": session.id}})
        return CheckoutSession(id=session.id, url=session.url)

    def construct_event(self, body: Union[bytes, str], signature: str) -> PaymentEvent:
        if not self.webhook_secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET is required")

        payload = body.decode("utf-8") if isinstance(body, bytes) else body
        stripe.WebhookSignature.verify_header(payload, signature, self.webhook_secret)

        event = json.loads(payload)
        obj = (event.get("data") or {}).get("object") or {}
        return PaymentEvent(type=event.get("type") or "", object=_payment_object(obj))
