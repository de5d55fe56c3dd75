from whatsapp_kit.services.llm.base import LLMError, LLMProvider, LLMResponse
from whatsapp_kit.services.llm.groq_provider import GroqProvider

__all__ = ["LLMError", "LLMProvider", "LLMResponse", "GroqProvider"]
