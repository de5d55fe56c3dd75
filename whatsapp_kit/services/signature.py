import binascii
import hashlib
import hmac
from typing import Optional, Union

SIGNATURE_PREFIX = "sha256="


def compute_signature(app_secret: str, raw_body: Union[bytes, str]) -> str:
    body = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
    return hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(
    app_secret: str,
    raw_body: Union[bytes, str],
    signature_header: Optional[str],
) -> bool:
    """Check an ``X-Hub-Signature-256`` style header against the raw body.

    Malformed hex or a digest of the wrong length is a failed check, not
    an exception.
    """
    if not signature_header or not app_secret:
        return False

    received_hex = signature_header.strip()
    if received_hex.startswith(SIGNATURE_PREFIX):
        received_hex = received_hex[len(SIGNATURE_PREFIX) :]

    try:
        received = bytes.fromhex(received_hex)
    except (ValueError, binascii.Error):
        return False

    expected = bytes.fromhex(compute_signature(app_secret, raw_body))
    if len(received) != len(expected):
        return False
    return hmac.compare_digest(received, expected)
