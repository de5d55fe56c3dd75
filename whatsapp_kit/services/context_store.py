from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from whatsapp_kit.services.store import Clock, ExpiringStore, utcnow


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Turn:
    role: Role
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    def as_prompt_message(self) -> dict:
        return {"role": Role(self.role).value, "content": self.content}


class ContextStore:
    """Sliding window of conversation turns per sender.

    Holds no timeout policy: the agent decides when a session is stale and
    calls ``clear`` before adding the next user turn.
    """

    def __init__(self, clock: Clock = utcnow):
        self._sessions: ExpiringStore[List[Turn]] = ExpiringStore(clock=clock)

    def get(self, user_id: str) -> List[Turn]:
        return list(self._sessions.get(user_id) or [])

    def get_last_updated(self, user_id: str) -> Optional[datetime]:
        return self._sessions.last_updated(user_id)

    def set(self, user_id: str, turns: List[Turn]) -> None:
        self._sessions.set(user_id, list(turns))

    def clear(self, user_id: str) -> None:
        self._sessions.delete(user_id)

    def add(self, user_id: str, turn: Turn, window_size: int) -> None:
        turns = self.get(user_id)
        turns.append(turn)
        turns = turns[max(0, len(turns) - window_size) :] if window_size > 0 else []
        self._sessions.set(user_id, turns)
