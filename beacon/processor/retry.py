"""
Retry policy for inference calls.

Exponential backoff with jitter. Only rate-limited and 5xx failures are
retried; everything else propagates on the first attempt.
"""
import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from beacon.config import RetryConfig
from beacon.exceptions import RateLimited, is_retryable

T = TypeVar("T")

JITTER_LOW = 0.5
JITTER_HIGH = 1.5


def backoff_delay(attempt: int, config: RetryConfig, rand: Callable[[], float] = random.random) -> float:
    """
    Delay before retry number `attempt` (1-based).

    base * 2**(attempt-1), capped at max_delay, times a jitter factor in [0.5, 1.5).
    """
    delay = min(config.base_delay * (2 ** (attempt - 1)), config.max_delay)
    return delay * (JITTER_LOW + (JITTER_HIGH - JITTER_LOW) * rand())


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
    label: str = "inference",
) -> T:
    """
    Await `operation` with bounded retries.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        config: Attempt count and delay bounds
        sleep: Awaitable sleep, injectable for tests
        rand: Uniform [0, 1) source for jitter
        label: Name used in log messages

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error immediately
    """
    config = config or RetryConfig()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt >= config.max_attempts:
                raise
            delay = backoff_delay(attempt, config, rand)
            if isinstance(e, RateLimited) and e.retry_after:
                delay = max(delay, min(e.retry_after, config.max_delay))
            logger.warning(
                f"{label} attempt {attempt}/{config.max_attempts} failed ({e}); retrying in {delay:.2f}s"
            )
            await sleep(delay)
