"""
Bounded retry with exponential backoff.

`execute` wraps any zero-argument coroutine factory. It knows nothing about
the operation it runs: every exception is retried until the policy is
exhausted, then the last one is re-raised unchanged.

Delay before retry `i` (zero-based):
    base_delay_ms * backoff_factor ** i + uniform(0, jitter_ms)
"""

import asyncio
import random
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, TypeVar

from src.core.config import settings
from src.core.logging import logger

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for a single call site."""
    max_retries: int = 3           # retries after the first attempt
    base_delay_ms: float = 500
    backoff_factor: float = 2.0
    jitter_ms: float = 100
    label: str = "operation"

    def delay_ms(self, attempt: int) -> float:
        jitter = random.uniform(0, self.jitter_ms) if self.jitter_ms > 0 else 0
        return self.base_delay_ms * self.backoff_factor ** attempt + jitter

    def for_call(self, label: str, max_retries: int) -> "RetryPolicy":
        return replace(self, label=label, max_retries=max_retries)


def default_policy() -> RetryPolicy:
    """Policy template built from the RETRY_* settings."""
    return RetryPolicy(
        base_delay_ms=settings.RETRY_BASE_DELAY_MS,
        backoff_factor=settings.RETRY_BACKOFF_FACTOR,
        jitter_ms=settings.RETRY_JITTER_MS,
    )


async def execute(operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    """
    Run `operation` up to `policy.max_retries + 1` times.

    Raises:
        The exception from the final attempt, as raised by `operation`.
    """
    attempt = 0
    while True:
        try:
            if attempt > 0:
                logger.info(f"[retry] Attempt {attempt}/{policy.max_retries} for {policy.label}")
            return await operation()
        except Exception as e:
            if attempt >= policy.max_retries:
                logger.error(f"[retry] {policy.label} failed after {attempt + 1} attempt(s): {e}")
                raise
            delay = policy.delay_ms(attempt)
            logger.warning(f"[retry] {policy.label} failed: {e}. Retrying in {delay:.0f}ms...")
            await asyncio.sleep(delay / 1000)
            attempt += 1
