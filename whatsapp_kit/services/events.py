from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class WhatsAppEvent(str, Enum):
    MESSAGE_RECEIVED = "message.received"
    MESSAGE_SENT = "message.sent"
    MESSAGE_DELIVERED = "message.delivered"
    MESSAGE_READ = "message.read"
    BUTTON_CLICKED = "button.clicked"
    LIST_SELECTED = "list.selected"
    CONVERSATION_STARTED = "conversation.started"
    CONVERSATION_ENDED = "conversation.ended"

    @classmethod
    def parse(cls, value: Any) -> Optional["WhatsAppEvent"]:
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class EventMessage:
    id: str
    type: str
    timestamp: datetime
    text: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "type": self.type, "timestamp": self.timestamp.isoformat()}
        if self.text is not None:
            data["text"] = self.text
        return data


@dataclass
class ConversationData:
    id: str
    started_at: datetime

    def to_dict(self) -> dict:
        return {"id": self.id, "startedAt": self.started_at.isoformat()}


@dataclass
class EventData:
    from_: str
    to: str
    message: Optional[EventMessage] = None
    conversation: Optional[ConversationData] = None
    metadata: Optional[dict] = None

    def to_dict(self) -> dict:
        """JSON-ready shape forwarded to automation webhooks."""
        data: dict[str, Any] = {"from": self.from_, "to": self.to}
        if self.message:
            data["message"] = self.message.to_dict()
        if self.conversation:
            data["conversation"] = self.conversation.to_dict()
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


@dataclass
class WorkflowEvent:
    type: WhatsAppEvent
    data: EventData

    def to_dict(self) -> dict:
        return {"type": self.type.value, "data": self.data.to_dict()}
