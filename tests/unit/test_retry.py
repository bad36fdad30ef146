import pytest

from breezeflow.utils.retry import compute_backoff, schedule_retry


def test_backoff_grows_exponentially_and_is_capped():
    assert compute_backoff(1, base=2, jitter=0, max_delay=60) == 2
    assert compute_backoff(3, base=2, jitter=0, max_delay=60) == 8
    assert compute_backoff(10, base=2, jitter=0, max_delay=60) == 60


def test_backoff_jitter_is_bounded():
    for _ in range(20):
        delay = compute_backoff(2, base=2, jitter=0.5, max_delay=60)
        assert 4 <= delay <= 4.5


@pytest.mark.asyncio
async def test_schedule_retry_without_delay_returns_immediately():
    assert await schedule_retry(1, base=0, jitter=0, max_delay=0) == 0
