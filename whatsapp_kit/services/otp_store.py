from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from whatsapp_kit.services.store import Clock, ExpiringStore, utcnow


@dataclass
class OTPChallenge:
    session_id: str
    code: str
    to: str
    expires_at: datetime
    attempts_remaining: int
    resend_available_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class OTPStore:
    """At most one live challenge per E.164 phone number."""

    def __init__(self, clock: Clock = utcnow):
        self._challenges: ExpiringStore[OTPChallenge] = ExpiringStore(
            expires_at=lambda challenge: challenge.expires_at,
            clock=clock,
        )

    def get_by_phone(self, to: str) -> Optional[OTPChallenge]:
        return self._challenges.get(to)

    def set(self, to: str, challenge: OTPChallenge) -> None:
        self._challenges.set(to, challenge)

    def delete(self, to: str) -> None:
        self._challenges.delete(to)

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        return self._challenges.sweep(now)

    def __len__(self) -> int:
        return len(self._challenges)
