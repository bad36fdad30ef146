from __future__ import annotations

import asyncio
import random

from ..constants import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_JITTER,
    DEFAULT_BACKOFF_MAX_DELAY,
)


def compute_backoff(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    jitter: float = DEFAULT_BACKOFF_JITTER,
    max_delay: float = DEFAULT_BACKOFF_MAX_DELAY,
) -> float:
    """Compute exponential backoff with jitter, capped at ``max_delay``."""
    delay = base**attempt
    if jitter:
        delay += random.uniform(0, jitter)
    return min(delay, max_delay)


async def schedule_retry(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    jitter: float = DEFAULT_BACKOFF_JITTER,
    max_delay: float = DEFAULT_BACKOFF_MAX_DELAY,
) -> float:
    """Sleep for computed backoff delay before retrying. Returns the delay used."""
    delay = compute_backoff(attempt, base=base, jitter=jitter, max_delay=max_delay)
    if delay > 0:
        await asyncio.sleep(delay)
    return delay
