import asyncio
from unittest.mock import Mock

import pytest

from whatsapp_kit.config import ConfigurationError
from whatsapp_kit.services.payment_service import (
    CheckoutSession,
    PaymentConfig,
    PaymentError,
    PaymentEvent,
    PaymentObject,
    PaymentProvider,
    PaymentService,
    to_minor_units,
)


class FakeProvider(PaymentProvider):
    def __init__(self, session=None, event=None):
        self.session = session or CheckoutSession(id="cs_1", url="https://checkout.example/cs_1")
        self.event = event
        self.created = []

    async def create_checkout_session(self, **kwargs):
        self.created.append(kwargs)
        return self.session

    def construct_event(self, body, signature):
        if signature != "good":
            raise ValueError("No signatures found matching the expected signature")
        return self.event


def _event(event_type, status, phone="+15550102030", kind="checkout.session"):
    metadata = {"customer_phone": phone} if phone else {}
    return PaymentEvent(
        type=event_type,
        object=PaymentObject(kind=kind, id="cs_1", amount_minor=2500, currency="usd", status=status, metadata=metadata),
    )


class TestRequest:
    def test_creates_session_and_sends_cta(self, whatsapp_client):
        provider = FakeProvider()
        service = PaymentService(provider, whatsapp_client, PaymentConfig(webhook_url="https://shop.example/pay/"))

        response = asyncio.run(service.request("+1 555 010 2030", 19.99, "usd", "Order #42", {"order": "42"}))

        assert response.payment_id == "cs_1"
        assert response.url == "https://checkout.example/cs_1"
        assert response.status == "pending"

        created = provider.created[0]
        assert created["amount_minor"] == 1999
        assert created["metadata"] == {"order": "42", "customer_phone": "+15550102030"}
        assert created["success_url"] == "https://shop.example/pay/success"
        assert created["cancel_url"] == "https://shop.example/pay/cancel"

        to, body, display_text, url = whatsapp_client.send_interactive_cta_url.call_args[0]
        assert to == "+15550102030"
        assert body == "Payment Request: Order #42\nAmount: 19.99 USD"
        assert display_text == "Pay Now"
        assert url == "https://checkout.example/cs_1"

    def test_invalid_phone(self, whatsapp_client):
        with pytest.raises(ValueError):
            asyncio.run(PaymentService(FakeProvider(), whatsapp_client).request("n/a", 1, "usd", "x"))

    def test_missing_checkout_url(self, whatsapp_client):
        service = PaymentService(FakeProvider(session=CheckoutSession(id="cs_2", url=None)), whatsapp_client)
        with pytest.raises(PaymentError, match="checkout session URL"):
            asyncio.run(service.request("+15550102030", 1, "usd", "x"))
        whatsapp_client.send_interactive_cta_url.assert_not_called()

    def test_cta_failure_still_returns_link(self, whatsapp_client):
        whatsapp_client.send_interactive_cta_url.side_effect = RuntimeError("send failed")
        response = asyncio.run(PaymentService(FakeProvider(), whatsapp_client).request("+15550102030", 5, "eur", "x"))
        assert response.url == "https://checkout.example/cs_1"

    def test_provider_not_configured(self, whatsapp_client):
        with pytest.raises(PaymentError, match="not configured"):
            asyncio.run(PaymentService(None, whatsapp_client).request("+15550102030", 5, "eur", "x"))


class TestHandleWebhook:
    def test_bad_signature(self, whatsapp_client):
        service = PaymentService(FakeProvider(event=_event("checkout.session.completed", "paid")), whatsapp_client)
        with pytest.raises(PaymentError, match="signature verification failed"):
            asyncio.run(service.handle_webhook(b"{}", "bad"))

    @pytest.mark.parametrize(
        "event",
        [
            _event("checkout.session.completed", "paid"),
            _event("checkout.session.async_payment_succeeded", "paid"),
            _event("payment_intent.succeeded", "succeeded", kind="payment_intent"),
        ],
    )
    def test_success_notifies_customer(self, whatsapp_client, event):
        service = PaymentService(FakeProvider(event=event), whatsapp_client)

        message = asyncio.run(service.handle_webhook(b"{}", "good"))

        assert message == "Payment successful! Thank you for your payment of 25.00 USD."
        whatsapp_client.send_text.assert_awaited_once_with("+15550102030", message)

    def test_custom_success_message(self, whatsapp_client):
        service = PaymentService(
            FakeProvider(event=_event("checkout.session.completed", "paid")),
            whatsapp_client,
            PaymentConfig(success_message="Got {amount} {currency}, thanks!"),
        )
        assert asyncio.run(service.handle_webhook(b"{}", "good")) == "Got 25.00 USD, thanks!"

    def test_unpaid_completed_session_is_ignored(self, whatsapp_client):
        service = PaymentService(FakeProvider(event=_event("checkout.session.completed", "unpaid")), whatsapp_client)
        assert asyncio.run(service.handle_webhook(b"{}", "good")) is None
        whatsapp_client.send_text.assert_not_called()

    def test_failure_message_only_when_configured(self, whatsapp_client):
        event = _event("checkout.session.expired", "expired")
        silent = PaymentService(FakeProvider(event=event), whatsapp_client)
        assert asyncio.run(silent.handle_webhook(b"{}", "good")) is None

        loud = PaymentService(FakeProvider(event=event), whatsapp_client, PaymentConfig(failed_message="Payment failed."))
        assert asyncio.run(loud.handle_webhook(b"{}", "good")) == "Payment failed."

    def test_missing_customer_phone(self, whatsapp_client):
        service = PaymentService(FakeProvider(event=_event("checkout.session.completed", "paid", phone=None)), whatsapp_client)
        assert asyncio.run(service.handle_webhook(b"{}", "good")) is None
        whatsapp_client.send_text.assert_not_called()

    def test_unrelated_event_ignored(self, whatsapp_client):
        service = PaymentService(FakeProvider(event=_event("customer.created", None)), whatsapp_client)
        assert asyncio.run(service.handle_webhook(b"{}", "good")) is None

    def test_configuration_error_is_not_masked(self, whatsapp_client):
        provider = FakeProvider()
        provider.construct_event = Mock(side_effect=ConfigurationError("STRIPE_WEBHOOK_SECRET is required"))

        with pytest.raises(ConfigurationError):
            asyncio.run(PaymentService(provider, whatsapp_client).handle_webhook(b"{}", "good"))


class TestMinorUnits:
    @pytest.mark.parametrize(
        "amount, expected",
        [(0.125, 13), (0.135, 14), (10, 1000), (19.99, 1999), (1.005, 101), (0.5, 50)],
    )
    def test_half_up(self, amount, expected):
        assert to_minor_units(amount) == expected
