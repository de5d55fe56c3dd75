"""Process-scoped service instances for the HTTP layer.

Tests replace these through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Optional

from whatsapp_kit.config import ConfigurationError, settings
from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.services.agent_service import AgentConfig, WhatsAppAgent
from whatsapp_kit.services.events import WhatsAppEvent
from whatsapp_kit.services.llm import GroqProvider
from whatsapp_kit.services.otp_service import OTPConfig, OTPService
from whatsapp_kit.services.payment_service import PaymentConfig, PaymentService
from whatsapp_kit.services.stripe_provider import StripeProvider
from whatsapp_kit.services.whatsapp_client import WhatsAppClient
from whatsapp_kit.services.workflow_service import WorkflowConfig, WorkflowService

logger = get_logger("dependencies")


def _require(value: Optional[str], env_name: str) -> str:
    if not value or not value.strip():
        raise ConfigurationError(f"{env_name} is required")
    return value.strip()


@lru_cache
def get_whatsapp_client() -> WhatsAppClient:
    return WhatsAppClient(
        api_key=_require(settings.kapso_api_key, "KAPSO_API_KEY"),
        phone_number_id=_require(settings.phone_number_id, "PHONE_NUMBER_ID"),
        base_url=settings.kapso_base_url,
    )


@lru_cache
def get_otp_service() -> OTPService:
    return OTPService(
        client=get_whatsapp_client(),
        config=OTPConfig(
            code_length=settings.otp_code_length,
            expires_in=settings.otp_expires_in,
            max_attempts=settings.otp_max_attempts,
            resend_cooldown=settings.otp_resend_cooldown,
        ),
    )


@lru_cache
def get_agent() -> WhatsAppAgent:
    llm = GroqProvider(
        api_key=_require(settings.groq_api_key, "GROQ_API_KEY"),
        default_model=settings.groq_model,
        base_url=settings.groq_base_url,
    )
    return WhatsAppAgent(
        llm=llm,
        client=get_whatsapp_client(),
        config=AgentConfig(
            context_window=settings.context_window,
            system_prompt=settings.system_prompt,
            session_timeout_seconds=settings.session_timeout_seconds,
        ),
    )


def get_optional_agent() -> Optional[WhatsAppAgent]:
    """The webhook only answers messages when the LLM is configured."""
    if not settings.groq_api_key:
        return None
    return get_agent()


@lru_cache
def get_workflow_service() -> WorkflowService:
    workflows = WorkflowService(config=WorkflowConfig(make_webhooks=dict(settings.make_webhooks)))
    if settings.make_webhook_url:
        workflows.on(WhatsAppEvent.MESSAGE_RECEIVED, workflows.forward_to_make(settings.make_webhook_url))
        logger.info("Forwarding message.received events to Make")
    return workflows


@lru_cache
def get_payment_service() -> PaymentService:
    provider = StripeProvider(
        secret_key=_require(settings.stripe_secret_key, "STRIPE_SECRET_KEY"),
        webhook_secret=settings.stripe_webhook_secret,
    )
    return PaymentService(
        provider=provider,
        client=get_whatsapp_client(),
        config=PaymentConfig(
            webhook_url=settings.payment_webhook_url,
            success_message=settings.payment_success_message,
            failed_message=settings.payment_failed_message,
        ),
    )
