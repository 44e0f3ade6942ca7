"""Bounded retry with exponential backoff for async calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("profile_analyzer.retry")


@dataclass
class RetryResult:
    """Outcome of a retried call: either a value or the last error."""

    value: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    description: str = "operation",
) -> RetryResult:
    """Call ``operation`` up to ``max_attempts`` times.

    The delay before attempt n+1 is ``initial_delay * backoff_factor ** (n-1)``.
    Never raises for a failing operation; the last exception is returned in
    the result instead. Cancellation still propagates.
    """
    max_attempts = max(1, max_attempts)
    delay = initial_delay
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            value = await operation()
            if attempt > 1:
                logger.info("%s succeeded on attempt %d", description, attempt)
            return RetryResult(value=value, attempts=attempt)
        except Exception as e:
            last_error = e
            logger.warning("%s failed (attempt %d/%d): %s", description, attempt, max_attempts, e)

        if attempt < max_attempts:
            await sleep(delay)
            delay *= backoff_factor

    return RetryResult(error=last_error, attempts=max_attempts)
