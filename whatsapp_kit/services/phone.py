import re
from typing import Optional

E164_RE = re.compile(r"^\+[1-9][0-9]{7,14}$")
BARE_NUMBER_RE = re.compile(r"^[1-9][0-9]{7,14}$")
NON_DIGITS_RE = re.compile(r"[^0-9]")


def normalize_e164(value: Optional[str]) -> Optional[str]:
    """Strict E.164 check used for OTP identities: no reformatting."""
    trimmed = (value or "").strip()
    return trimmed if E164_RE.match(trimmed) else None


def normalize_recipient(value: Optional[str]) -> Optional[str]:
    """Lenient recipient parsing for outbound sends.

    "+1 (555) 010-2030" -> "+15550102030", "1 555 010 2030" -> "15550102030".
    """
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    if trimmed.startswith("+"):
        candidate = "+" + NON_DIGITS_RE.sub("", trimmed[1:])
        return candidate if E164_RE.match(candidate) else None
    digits = NON_DIGITS_RE.sub("", trimmed)
    return digits if BARE_NUMBER_RE.match(digits) else None


def to_wa_id(phone: str) -> str:
    """The Cloud API expects recipients without the leading plus."""
    return phone[1:] if phone.startswith("+") else phone
