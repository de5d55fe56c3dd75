import asyncio
import inspect
import math
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from whatsapp_kit.logging_config import get_logger

logger = get_logger("retry")

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_DELAY_MS = 500
DEFAULT_BACKOFF_FACTOR = 2
DEFAULT_MAX_DELAY_MS = 5000

SleepFunc = Callable[[float], Awaitable[Any]]


async def delay(ms: float, sleep_func: SleepFunc = asyncio.sleep) -> None:
    await sleep_func(max(0, ms) / 1000)


def next_delay(current_ms: float, backoff_factor: float, max_delay_ms: float) -> float:
    return min(max_delay_ms, math.ceil(current_ms * backoff_factor))


async def retry(
    operation: Callable[[], Union[T, Awaitable[T]]],
    *,
    retries: int = DEFAULT_RETRIES,
    delay_ms: float = DEFAULT_DELAY_MS,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    max_delay_ms: float = DEFAULT_MAX_DELAY_MS,
    on_retry: Optional[Callable[[Exception, int], Any]] = None,
    sleep_func: SleepFunc = asyncio.sleep,
) -> T:
    """Run ``operation`` up to ``retries + 1`` times.

    Waits ``delay_ms`` after the first failure, then grows the wait by
    ``backoff_factor`` up to ``max_delay_ms``. The last error is re-raised.
    """
    attempt = 0
    wait_ms = delay_ms
    while True:
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            if attempt >= retries:
                logger.warning(
                    f"Giving up after {attempt + 1} attempts: {e}",
                    extra={"context": {"attempts": attempt + 1}},
                )
                raise
            attempt += 1
            if on_retry is not None:
                on_retry(e, attempt)
            logger.info(
                f"Retry {attempt}/{retries} in {wait_ms}ms: {e}",
                extra={"context": {"attempt": attempt, "delay_ms": wait_ms}},
            )
            await delay(wait_ms, sleep_func)
            wait_ms = next_delay(wait_ms, backoff_factor, max_delay_ms)
