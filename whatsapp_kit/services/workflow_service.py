"""Workflow automation: canonical events, handlers, Make.com forwarding."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

import httpx

from whatsapp_kit.config import ConfigurationError
from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.services.event_dispatcher import Condition, EventDispatcher, EventHandler
from whatsapp_kit.services.event_normalizer import normalize_event
from whatsapp_kit.services.events import EventData, WhatsAppEvent, WorkflowEvent
from whatsapp_kit.services.retry import SleepFunc, delay as delay_ms, retry as retry_with_backoff

logger = get_logger("workflow_service")

T = TypeVar("T")


class AutomationWebhookError(Exception):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Make webhook failed: {status_code} {body}")


@dataclass
class WorkflowConfig:
    make_webhooks: Dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 30.0


def _json_body(data: Any) -> Any:
    if data is None:
        return {}
    if hasattr(data, "to_dict"):
        return data.to_dict()
    return data


class WorkflowService:
    def __init__(
        self,
        config: Optional[WorkflowConfig] = None,
        dispatcher: Optional[EventDispatcher] = None,
        sleep_func: SleepFunc = asyncio.sleep,
    ):
        self.config = config or WorkflowConfig()
        self.events = dispatcher or EventDispatcher()
        self.sleep_func = sleep_func

    def on(self, event: Union[WhatsAppEvent, str], handler: EventHandler) -> None:
        self.events.on(event, handler)

    def off(self, event: Union[WhatsAppEvent, str], handler: EventHandler) -> None:
        self.events.off(event, handler)

    async def handle_webhook(self, payload: Any) -> Optional[WorkflowEvent]:
        """Normalize ``payload`` and emit it; handler errors propagate."""
        event = normalize_event(payload)
        if event is None:
            logger.debug("Webhook payload did not map to an event")
            return None

        logger.info(
            f"Event {event.type.value}",
            extra={"context": {"from": event.data.from_, "to": event.data.to}},
        )
        await self.events.emit(event)
        return event

    async def trigger_make(self, webhook_url: str, data: Any = None) -> None:
        url = (webhook_url or "").strip()
        if not url:
            raise ConfigurationError("Make webhook URL is required")

        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            response = await client.post(url, json=_json_body(data))

        if not response.is_success:
            logger.error(
                f"Make webhook failed: {response.status_code}",
                extra={"context": {"status_code": response.status_code, "body": response.text[:500]}},
            )
            raise AutomationWebhookError(response.status_code, response.text)

    async def trigger_make_by_id(self, make_id: str, data: Any = None) -> None:
        url = self.config.make_webhooks.get(make_id)
        if not url:
            raise ConfigurationError(
                "Make webhook mapping not found. Provide a webhook URL or map the make id in make_webhooks."
            )
        await self.trigger_make(url, data)

    def condition(self, predicate: Callable[[T], Union[bool, Awaitable[bool]]]) -> Condition[T]:
        return Condition(predicate)

    async def delay(self, ms: float) -> None:
        await delay_ms(ms, self.sleep_func)

    async def retry(self, operation: Callable[[], Any], **options: Any) -> Any:
        options.setdefault("sleep_func", self.sleep_func)
        return await retry_with_backoff(operation, **options)

    def forward_to_make(self, webhook_url: str, **retry_options: Any) -> EventHandler:
        """Build a handler that posts each event's data to ``webhook_url`` with retries."""

        async def handler(data: EventData) -> None:
            await self.retry(lambda: self.trigger_make(webhook_url, data), **retry_options)

        return handler
