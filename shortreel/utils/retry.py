"""Retry helper for transient I/O failures."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from shortreel.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    description: str,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
) -> T:
    """
    Await ``operation()`` until it succeeds or attempts run out.

    The wait grows linearly with the attempt number. The last error is
    re-raised unchanged.
    """
    attempts = max(1, attempts if attempts is not None else settings.retry_attempts)
    delay = settings.retry_delay_seconds if delay is None else delay

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt == attempts:
                raise
            logger.warning(f"{description} failed (attempt {attempt}/{attempts}): {e}")
            await asyncio.sleep(delay * attempt)

    raise RuntimeError("unreachable")
