"""Normalize inbound webhook payloads into canonical workflow events.

Two shapes are recognized, in order:

1. explicit: top-level ``type`` names a known event and ``from``/``to`` are
   non-empty strings;
2. implicit (Kapso message webhooks): ``message.from`` plus a recipient from
   ``phone_number_id`` or ``conversation.phone_number_id``; the event type
   comes from ``message.kapso.direction``/``status``.

Anything else yields ``None`` and the caller should ignore the payload.
Upstream payload shapes are not contractually stable, so every field is
type-checked rather than trusted.
"""

import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

from whatsapp_kit.services.events import (
    ConversationData,
    EventData,
    EventMessage,
    WhatsAppEvent,
    WorkflowEvent,
)

MILLISECONDS_THRESHOLD = 1e12

OUTBOUND_STATUS_EVENTS = {
    "read": WhatsAppEvent.MESSAGE_READ,
    "delivered": WhatsAppEvent.MESSAGE_DELIVERED,
    "sent": WhatsAppEvent.MESSAGE_SENT,
}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _first_present(record: dict, *keys: str) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _from_epoch(value: float) -> Optional[datetime]:
    millis = value if value >= MILLISECONDS_THRESHOLD else value * 1000
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse epoch seconds, epoch milliseconds, or a date string.

    Numbers below 1e12 are seconds, anything larger is milliseconds.
    Naive results are assumed to be UTC.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return _from_epoch(value) if math.isfinite(value) else None

    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        numeric = float(text)
    except ValueError:
        numeric = None
    if numeric is not None:
        return _from_epoch(numeric) if math.isfinite(numeric) else None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None
    if parsed is None:
        return None

    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def normalize_message(value: Any) -> Optional[EventMessage]:
    if not isinstance(value, dict):
        return None

    message_id = _str(value.get("id"))
    message_type = _str(value.get("type"))
    timestamp = parse_timestamp(_first_present(value, "timestamp", "time", "createdAt"))
    if not message_id or not message_type or not timestamp:
        return None

    text = None
    raw_text = value.get("text")
    if isinstance(raw_text, str):
        text = raw_text
    elif isinstance(raw_text, dict) and isinstance(raw_text.get("body"), str):
        text = raw_text["body"]

    kapso = value.get("kapso")
    if not text and isinstance(kapso, dict) and isinstance(kapso.get("content"), str):
        text = kapso["content"]

    return EventMessage(id=message_id, type=message_type, timestamp=timestamp, text=text)


def normalize_conversation(value: Any) -> Optional[ConversationData]:
    if not isinstance(value, dict):
        return None

    conversation_id = _str(value.get("id"))
    started_at = parse_timestamp(_first_present(value, "startedAt", "started_at", "timestamp"))
    if not conversation_id or not started_at:
        return None
    return ConversationData(id=conversation_id, started_at=started_at)


def normalize_metadata(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


def resolve_kapso_event_type(message: dict) -> WhatsAppEvent:
    kapso = message.get("kapso")
    if isinstance(kapso, dict) and kapso.get("direction") == "outbound":
        status = _str(kapso.get("status"))
        if status in OUTBOUND_STATUS_EVENTS:
            return OUTBOUND_STATUS_EVENTS[status]
    return WhatsAppEvent.MESSAGE_RECEIVED


def normalize_event(payload: Any) -> Optional[WorkflowEvent]:
    if not isinstance(payload, dict):
        return None

    def build(event_type: WhatsAppEvent, sender: str, recipient: str) -> WorkflowEvent:
        return WorkflowEvent(
            type=event_type,
            data=EventData(
                from_=sender,
                to=recipient,
                message=normalize_message(payload.get("message")),
                conversation=normalize_conversation(payload.get("conversation")),
                metadata=normalize_metadata(payload.get("metadata")),
            ),
        )

    explicit_type = WhatsAppEvent.parse(payload.get("type"))
    if explicit_type:
        sender, recipient = _str(payload.get("from")), _str(payload.get("to"))
        if not sender or not recipient:
            return None
        return build(explicit_type, sender, recipient)

    message = payload.get("message")
    if not isinstance(message, dict):
        return None

    sender = _str(message.get("from"))
    conversation = payload.get("conversation")
    recipient = _str(payload.get("phone_number_id"))
    if not recipient and isinstance(conversation, dict):
        recipient = _str(conversation.get("phone_number_id"))

    if not sender or not recipient:
        return None
    return build(resolve_kapso_event_type(message), sender, recipient)
