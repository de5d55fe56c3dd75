from typing import Any, Optional

import httpx

from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.services.phone import to_wa_id

logger = get_logger("whatsapp_client")


class WhatsAppClientError(Exception):
    """Sending through the WhatsApp Cloud API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class WhatsAppClient:
    """Async client for the Kapso-proxied WhatsApp Cloud API."""

    DEFAULT_BASE_URL = "https://api.kapso.ai/meta/whatsapp"
    API_VERSION = "v24.0"

    def __init__(
        self,
        api_key: str,
        phone_number_id: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.phone_number_id = phone_number_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/{self.API_VERSION}/{self.phone_number_id}/messages"

    async def _post_message(self, payload: dict) -> dict[str, Any]:
        body = {"messaging_product": "whatsapp", "recipient_type": "individual", **payload}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.messages_url,
                    headers={"X-API-Key": self.api_key, "Content-Type": "application/json"},
                    json=body,
                )
        except httpx.RequestError as e:
            logger.error(f"WhatsApp request failed: {e}", extra={"context": {"to": body.get("to")}})
            raise WhatsAppClientError(f"WhatsApp request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                f"WhatsApp API error: {response.status_code} - {response.text}",
                extra={"context": {"to": body.get("to"), "status_code": response.status_code}},
            )
            raise WhatsAppClientError(
                f"WhatsApp API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {}

    async def send_text(self, to: str, body: str) -> dict[str, Any]:
        """Send a plain text message."""
        return await self._post_message(
            {"to": to_wa_id(to), "type": "text", "text": {"body": body}},
        )

    async def send_interactive_cta_url(
        self,
        to: str,
        body_text: str,
        display_text: str,
        url: str,
    ) -> dict[str, Any]:
        """Send an interactive message with a single call-to-action URL button."""
        return await self._post_message(
            {
                "to": to_wa_id(to),
                "type": "interactive",
                "interactive": {
                    "type": "cta_url",
                    "body": {"text": body_text},
                    "action": {
                        "name": "cta_url",
                        "parameters": {"display_text": display_text, "url": url},
                    },
                },
            },
        )


def extract_message_id(response: Any) -> Optional[str]:
    if not isinstance(response, dict):
        return None
    messages = response.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], dict) and messages[0].get("id"):
        return messages[0]["id"]
    return response.get("message_id") or response.get("id")
