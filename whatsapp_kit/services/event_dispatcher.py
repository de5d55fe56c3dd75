import inspect
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar, Union

from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.services.events import EventData, WhatsAppEvent, WorkflowEvent

logger = get_logger("event_dispatcher")

T = TypeVar("T")

EventHandler = Callable[[EventData], Union[None, Awaitable[None]]]


async def _call(func: Callable[..., Any], *args: Any) -> Any:
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class EventDispatcher:
    """Maps event types to ordered sets of handlers.

    ``emit`` awaits handlers one by one in registration order and does not
    catch their exceptions: the first failure aborts the rest of that emit
    and reaches the caller.
    """

    def __init__(self):
        self._handlers: Dict[WhatsAppEvent, Dict[EventHandler, None]] = {}

    def on(self, event: Union[WhatsAppEvent, str], handler: EventHandler) -> None:
        self._handlers.setdefault(WhatsAppEvent(event), {})[handler] = None

    def off(self, event: Union[WhatsAppEvent, str], handler: EventHandler) -> None:
        handlers = self._handlers.get(WhatsAppEvent(event))
        if handlers is not None:
            handlers.pop(handler, None)

    def handlers_for(self, event: Union[WhatsAppEvent, str]) -> list:
        return list(self._handlers.get(WhatsAppEvent(event), {}))

    async def emit(self, event: WorkflowEvent) -> int:
        handlers = self.handlers_for(event.type)
        if not handlers:
            logger.debug(f"No handlers for {event.type.value}")
            return 0

        for handler in handlers:
            await _call(handler, event.data)
        return len(handlers)


class Condition(Generic[T]):
    """``condition(pred).then(a).otherwise(b)`` then ``await chain.run(data)``."""

    def __init__(self, predicate: Callable[[T], Union[bool, Awaitable[bool]]]):
        self._predicate = predicate
        self._on_true: Optional[Callable[[T], Any]] = None
        self._on_false: Optional[Callable[[T], Any]] = None

    def then(self, handler: Callable[[T], Any]) -> "Condition[T]":
        self._on_true = handler
        return self

    def otherwise(self, handler: Callable[[T], Any]) -> "Condition[T]":
        self._on_false = handler
        return self

    async def run(self, data: T) -> None:
        branch = self._on_true if await _call(self._predicate, data) else self._on_false
        if branch is not None:
            await _call(branch, data)
