from typing import List, Optional

import httpx

from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.services.llm.base import LLMError, LLMProvider, LLMResponse

logger = get_logger("llm.groq")


class GroqProvider(LLMProvider):
    """Groq chat completions (OpenAI-compatible API)."""

    DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"

    def __init__(
        self,
        api_key: str,
        default_model: str = "openai/gpt-oss-120b",
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout_seconds = timeout_seconds

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        payload = {"model": model, "messages": messages}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        logger.debug(f"Groq request: model={model}, messages_count={len(messages)}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.RequestError as e:
            logger.error(f"Groq request error: {e}")
            raise LLMError(f"Groq request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"Groq error: {response.text}")
            raise LLMError(f"Groq request failed: {response.status_code} {response.text}")

        try:
            data = response.json()
            content = ""
            choices = data.get("choices") or []
            if choices:
                content = ((choices[0].get("message") or {}).get("content") or "").strip()
        except (ValueError, AttributeError, TypeError, IndexError) as e:
            logger.error(f"Groq invalid response: {response.text[:500]}")
            raise LLMError("Groq returned an invalid response") from e

        if not content:
            raise LLMError("Groq did not return a message")

        return LLMResponse(
            content=content,
            model=data.get("model") or model,
            usage=data.get("usage"),
            id=data.get("id"),
        )
