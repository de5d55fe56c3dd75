"""Payment requests delivered as WhatsApp CTA messages.

The checkout provider is injected; it creates hosted checkout sessions and
verifies/parses its own signed webhook events.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Union

from whatsapp_kit.config import ConfigurationError
from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.services.phone import normalize_recipient
from whatsapp_kit.services.whatsapp_client import WhatsAppClient

logger = get_logger("payment_service")

DEFAULT_SUCCESS_MESSAGE = "Payment successful! Thank you for your payment of {amount} {currency}."

SUCCEEDED_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAILED_EVENTS = {"checkout.session.async_payment_failed", "checkout.session.expired"}
INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"


class PaymentError(Exception):
    """Checkout provider failure or an invalid webhook signature."""


@dataclass
class CheckoutSession:
    id: str
    url: Optional[str]


@dataclass
class PaymentObject:
    kind: str  # "checkout.session" or "payment_intent"
    id: str
    amount_minor: int = 0
    currency: str = ""
    status: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentEvent:
    type: str
    object: PaymentObject


@dataclass
class PaymentResponse:
    payment_id: str
    url: str
    status: str = "pending"


class PaymentProvider(ABC):
    @abstractmethod
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
        """Create a hosted checkout session."""

    @abstractmethod
    def construct_event(self, body: Union[bytes, str], signature: str) -> PaymentEvent:
        """Verify the webhook signature and parse the event. Raises on mismatch."""


@dataclass
class PaymentConfig:
    webhook_url: Optional[str] = None
    success_message: Optional[str] = None
    failed_message: Optional[str] = None


def render_amount(template: str, amount: float, currency: str) -> str:
    return template.replace("{amount}", f"{amount:.2f}", 1).replace("{currency}", currency, 1)


def to_minor_units(amount: float) -> int:
    """Cents from a major-unit amount, halves rounded up: 0.125 -> 13."""
    return int(Decimal(str(amount)).scaleb(2).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class PaymentService:
    def __init__(
        self,
        provider: Optional[PaymentProvider],
        client: WhatsAppClient,
        config: Optional[PaymentConfig] = None,
    ):
        self.provider = provider
        self.client = client
        self.config = config or PaymentConfig()

    def _callback_url(self, suffix: str) -> str:
        base = (self.config.webhook_url or "https://example.com").rstrip("/")
        return f"{base}/{suffix}"

    async def request(
        self,
        to: str,
        amount: float,
        currency: str,
        description: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentResponse:
        if self.provider is None:
            raise PaymentError("Payment provider is not configured")

        phone = normalize_recipient(to)
        if not phone:
            raise ValueError("Invalid phone number format")

        session = await self.provider.create_checkout_session(
            amount_minor=to_minor_units(amount),
            currency=currency,
            description=description,
            metadata={**(metadata or {}), "customer_phone": phone},
            success_url=self._callback_url("success"),
            cancel_url=self._callback_url("cancel"),
        )
        if not session.url:
            raise PaymentError("Failed to create checkout session URL")

        try:
            await self.client.send_interactive_cta_url(
                phone,
                f"Payment Request: {description}\nAmount: {amount:.2f} {currency.upper()}",
                "Pay Now",
                session.url,
            )
        except Exception as e:
            # the checkout session exists, the customer can still be sent the link
            logger.error(f"Failed to send payment request: {e}", extra={"context": {"payment_id": session.id}})

        return PaymentResponse(payment_id=session.id, url=session.url)

    async def handle_webhook(self, body: Union[bytes, str], signature: str) -> Optional[str]:
        """Notify the customer about a settled payment. Returns the message sent, if any."""
        if self.provider is None:
            raise PaymentError("Payment provider is not configured")

        try:
            event = self.provider.construct_event(body, signature)
        except ConfigurationError:
            raise
        except Exception as e:
            raise PaymentError(f"Webhook signature verification failed: {e}") from e

        payment = event.object
        success_template = self.config.success_message or DEFAULT_SUCCESS_MESSAGE

        if event.type in SUCCEEDED_EVENTS and payment.status == "paid":
            return await self._notify(payment, success_template)
        if event.type == INTENT_SUCCEEDED and payment.status == "succeeded":
            return await self._notify(payment, success_template)
        if event.type in FAILED_EVENTS or event.type == INTENT_FAILED:
            if self.config.failed_message:
                return await self._notify(payment, self.config.failed_message)
            return None

        logger.info(f"Ignored payment event type: {event.type}")
        return None

    async def _notify(self, payment: PaymentObject, template: str) -> Optional[str]:
        phone = payment.metadata.get("customer_phone")
        if not phone:
            logger.info(f"No customer_phone in metadata for {payment.kind} {payment.id}")
            return None

        message = render_amount(template, payment.amount_minor / 100, payment.currency.upper())
        try:
            await self.client.send_text(phone, message)
        except Exception as e:
            logger.error(f"Failed to send payment notification: {e}", extra={"context": {"payment_id": payment.id}})
            return None
        logger.info("Payment notification sent", extra={"context": {"payment_id": payment.id, "to": phone}})
        return message
