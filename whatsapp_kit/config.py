from typing import Optional

from pydantic_settings import BaseSettings


class ConfigurationError(ValueError):
    """Required credential or mapping is missing."""


class Settings(BaseSettings):
    kapso_api_key: str = ""
    phone_number_id: str = ""
    kapso_base_url: str = "https://api.kapso.ai/meta/whatsapp"

    groq_api_key: str = ""
    groq_model: str = "openai/gpt-oss-120b"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    system_prompt: str = ""
    context_window: int = 10
    session_timeout_seconds: float = 300

    otp_brand: str = "WhatsApp Kit"
    otp_code_length: int = 6
    otp_expires_in: int = 300
    otp_max_attempts: int = 3
    otp_resend_cooldown: int = 30

    make_webhook_url: Optional[str] = None
    make_webhooks: dict[str, str] = {}

    stripe_secret_key: str = ""
    stripe_webhook_secret: Optional[str] = None
    payment_webhook_url: Optional[str] = None
    payment_success_message: Optional[str] = None
    payment_failed_message: Optional[str] = None

    whatsapp_app_secret: Optional[str] = None
    log_level: str = "INFO"
    debug: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
