from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


class LLMError(Exception):
    """Completion provider returned an error or an empty reply."""


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None
    id: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return int((self.usage or {}).get("total_tokens") or 0)


class LLMProvider(ABC):
    """Abstract base class for chat completion providers."""

    @abstractmethod
    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Generate a reply for role-tagged messages ordered oldest-first."""
