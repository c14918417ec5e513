"""Bounded retry for transient failures of external calls."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from structlog import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 2,
    base_delay: float = 0.2,
    backoff: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
    operation: str | None = None,
) -> T:
    """
    Await ``func()`` and retry it on the given exceptions.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry in seconds
        backoff: Multiplier applied to the delay after each retry
        exceptions: Exception types considered transient
        operation: Name used in log events

    Returns:
        Result of the first successful attempt

    Raises:
        The last transient exception once retries are exhausted, or any
        non-transient exception immediately.
    """
    name = operation or getattr(func, "__name__", "operation")
    current_delay = base_delay
    attempt = 0

    while True:
        try:
            return await func()
        except exceptions as e:
            if attempt >= max_retries:
                logger.error(
                    "retries_exhausted",
                    operation=name,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise

            attempt += 1
            logger.warning(
                "transient_failure_retrying",
                operation=name,
                attempt=attempt,
                max_retries=max_retries,
                delay=current_delay,
                error=str(e),
            )
            await asyncio.sleep(current_delay)
            current_delay *= backoff

