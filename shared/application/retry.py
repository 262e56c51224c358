"""
Async retry helper

Runs a coroutine factory up to `attempts` times, sleeping with
exponential backoff between attempts. Only the exception types listed in
`retry_on` are retried; anything else propagates immediately.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff: float = 0.5,
    timeout: float | None = None,
    retry_on: Tuple[Type[BaseException], ...] = (asyncio.TimeoutError,),
    name: str = 'operation',
) -> T:
    """
    Each attempt gets its own `timeout` (when given); a timed-out attempt
    counts as a retryable failure. The last failure is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    retry_on = tuple(set(retry_on) | {asyncio.TimeoutError}) if timeout else retry_on

    for attempt in range(1, attempts + 1):
        try:
            if timeout:
                return await asyncio.wait_for(operation(), timeout=timeout)
            return await operation()
        except retry_on as e:
            if attempt == attempts:
                logger.warning(f"{name} failed after {attempts} attempts: {e!r}")
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.info(f"{name} attempt {attempt}/{attempts} failed ({e!r}), retrying in {delay:.2f}s")
            if delay:
                await asyncio.sleep(delay)

    raise AssertionError("unreachable")
