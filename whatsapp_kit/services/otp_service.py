"""One-time-password delivery and verification over WhatsApp."""

import hmac
import json
import math
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from whatsapp_kit.logging_config import bind, get_logger
from whatsapp_kit.services.otp_store import OTPChallenge, OTPStore
from whatsapp_kit.services.phone import normalize_e164
from whatsapp_kit.services.result import Result
from whatsapp_kit.services.store import Clock, utcnow
from whatsapp_kit.services.whatsapp_client import WhatsAppClient, extract_message_id

logger = get_logger("otp_service")

DEFAULT_TEMPLATE = "{brand} verification code: {code}"
CODE_LENGTHS = (4, 6, 8)


@dataclass
class OTPConfig:
    code_length: int = 6
    expires_in: int = 300
    max_attempts: int = 3
    resend_cooldown: int = 30

    def __post_init__(self):
        if self.code_length not in CODE_LENGTHS:
            raise ValueError(f"code_length must be one of {CODE_LENGTHS}, got {self.code_length}")


@dataclass
class OTPStatus:
    session_id: str
    expires_at: datetime
    attempts_remaining: int


def generate_code(length: int) -> str:
    """Uniform random code in [0, 10**length), zero-padded."""
    return str(secrets.randbelow(10**length)).zfill(length)


def render_message(brand: str, code: str, template: Optional[str] = None) -> str:
    return (template or DEFAULT_TEMPLATE).replace("{brand}", brand, 1).replace("{code}", code, 1)


def _response_error(response: Any) -> Optional[str]:
    if not isinstance(response, dict):
        return None
    error = response.get("error")
    if error:
        if isinstance(error, dict):
            return error.get("message") or json.dumps(error)
        return str(error)
    errors = response.get("errors")
    if errors:
        return json.dumps(errors, default=str)
    return None


def _status(challenge: OTPChallenge) -> OTPStatus:
    return OTPStatus(
        session_id=challenge.session_id,
        expires_at=challenge.expires_at,
        attempts_remaining=challenge.attempts_remaining,
    )


class OTPService:
    """Issues and checks OTP challenges, one per phone number.

    ``verify`` never awaits, so the read-decrement-write of the attempt
    counter cannot interleave with another coroutine.
    """

    def __init__(
        self,
        client: WhatsAppClient,
        config: Optional[OTPConfig] = None,
        store: Optional[OTPStore] = None,
        clock: Clock = utcnow,
    ):
        self.client = client
        self.config = config or OTPConfig()
        self.clock = clock
        self.store = store or OTPStore(clock=clock)

    async def send(
        self,
        to: str,
        brand: str,
        template: Optional[str] = None,
        expires_in: Optional[int] = None,
    ) -> Result[OTPStatus]:
        phone = normalize_e164(to)
        if not phone:
            return Result.failure("Invalid phone number format", "invalid_phone")

        now = self.clock()
        self.store.cleanup_expired(now)
        log = bind(logger, to=phone)

        existing = self.store.get_by_phone(phone)
        if existing and existing.resend_available_at > now:
            seconds_left = math.ceil((existing.resend_available_at - now).total_seconds())
            return Result.failure(f"Resend available in {seconds_left}s", "resend_cooldown")

        ttl = expires_in if expires_in is not None else self.config.expires_in
        code = generate_code(self.config.code_length)
        challenge = OTPChallenge(
            session_id=str(uuid.uuid4()),
            code=code,
            to=phone,
            expires_at=now + timedelta(seconds=ttl),
            attempts_remaining=self.config.max_attempts,
            resend_available_at=now + timedelta(seconds=self.config.resend_cooldown),
        )
        self.store.set(phone, challenge)

        message = render_message(brand, code, template)
        log.debug(f"Generated OTP {code}", context={"session_id": challenge.session_id})

        try:
            response = await self.client.send_text(phone, message)
        except Exception as e:
            self._rollback(challenge)
            log.error(f"Failed to send OTP: {e}", exc_info=True)
            return Result.failure(str(e) or "Failed to send OTP", "send_failed")

        error = _response_error(response)
        if error:
            self._rollback(challenge)
            log.error(f"WhatsApp API returned an error: {error}")
            return Result.failure(f"WhatsApp API error: {error}", "send_failed")

        message_id = extract_message_id(response)
        if message_id:
            log.info("OTP queued", context={"session_id": challenge.session_id, "message_id": message_id})
        else:
            log.warning("No message ID in response, delivery status uncertain")

        return Result.success(_status(challenge))

    def verify(self, to: str, code: str) -> Result[OTPStatus]:
        phone = normalize_e164(to)
        if not phone:
            return Result.failure("Invalid phone number format", "invalid_phone")

        now = self.clock()
        self.store.cleanup_expired(now)

        challenge = self.store.get_by_phone(phone)
        if not challenge:
            return Result.failure("No active OTP session", "no_session")

        if challenge.is_expired(now):
            self.store.delete(phone)
            return Result.failure("OTP expired", "expired")

        if challenge.attempts_remaining <= 0:
            self.store.delete(phone)
            return Result.failure("Max attempts exceeded", "max_attempts", _status(challenge))

        if not hmac.compare_digest(challenge.code.encode(), (code or "").strip().encode()):
            challenge.attempts_remaining -= 1
            if challenge.attempts_remaining <= 0:
                self.store.delete(phone)
                logger.info("OTP attempts exhausted", extra={"context": {"to": phone}})
                return Result.failure("Max attempts exceeded", "max_attempts", _status(challenge))
            self.store.set(phone, challenge)
            return Result.failure("Invalid code", "invalid_code", _status(challenge))

        self.store.delete(phone)
        logger.info("OTP verified", extra={"context": {"to": phone, "session_id": challenge.session_id}})
        return Result.success(_status(challenge))

    def _rollback(self, challenge: OTPChallenge) -> None:
        if self.store.get_by_phone(challenge.to) is challenge:
            self.store.delete(challenge.to)
