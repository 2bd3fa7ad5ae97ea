"""Bounded retry and timeout helpers for browser and network steps."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryError(Exception):
    """All attempts failed; `last_error` holds the final exception."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay_seconds: float = 1.0,
    backoff: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    label: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call `fn` until it succeeds or `max_attempts` is reached.

    The delay between attempts starts at `delay_seconds` and is multiplied by
    `backoff` after each failure (1.0 keeps it fixed). Exceptions outside
    `retry_on` propagate immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    delay = delay_seconds
    last_error: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await fn()
        except retry_on as e:
            last_error = e
            if attempt < max_attempts:
                logger.warning("%s failed (attempt %d/%d): %s. Retrying in %.1fs",
                               label, attempt, max_attempts, e, delay)
                await sleep(delay)
                delay *= backoff
            else:
                logger.error("%s failed after %d attempts: %s", label, max_attempts, e)
    raise RetryError(max_attempts, last_error)


async def with_timeout(awaitable: Awaitable[T], seconds: float, message: str) -> T:
    """Await with a deadline; a hang becomes `TimeoutError(message)`."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise TimeoutError(message) from e
