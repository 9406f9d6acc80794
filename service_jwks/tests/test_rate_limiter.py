"""
Unit tests for the refresh rate limiter.
"""

import asyncio

import pytest

from service_jwks.app.ratelimit.token_bucket import TokenBucketRateLimiter, every
from shared.errors import RateLimitWaitError


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestTokenBucketRateLimiter:
    """Test cases for TokenBucketRateLimiter."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def limiter(self, clock):
        """One token every five minutes."""
        return TokenBucketRateLimiter(every(300), 1, clock=clock)

    def test_every(self):
        """Test interval to rate conversion."""
        assert every(300) == pytest.approx(1 / 300)
        assert every(0) == float("inf")

    def test_burst_must_be_positive(self):
        """Test that an empty bucket is rejected."""
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(1.0, 0)

    def test_allow_replenishes_with_time(self, limiter, clock):
        """Test non-blocking admission over time."""
        assert limiter.allow() is True
        assert limiter.allow() is False

        clock.now = 299.0
        assert limiter.allow() is False
        clock.now = 300.0
        assert limiter.allow() is True

    @pytest.mark.asyncio
    async def test_wait_within_burst_is_immediate(self, limiter):
        """Test that a full bucket admits without blocking."""
        await asyncio.wait_for(limiter.wait(), 0.1)

        assert limiter.get_status()["tokens"] == 0.0

    @pytest.mark.asyncio
    async def test_wait_beyond_timeout_fails_without_consuming(self, limiter, clock):
        """Test that a wait that cannot finish in time is refused."""
        await limiter.wait()

        with pytest.raises(RateLimitWaitError) as exc_info:
            await limiter.wait(timeout=1.0)

        assert exc_info.value.details["delay_seconds"] == pytest.approx(300.0)
        clock.now = 300.0
        assert limiter.allow() is True

    @pytest.mark.asyncio
    async def test_wait_sleeps_until_token(self):
        """Test that a short wait completes once the token returns."""
        limiter = TokenBucketRateLimiter(every(0.05), 1)
        await limiter.wait()

        await asyncio.wait_for(limiter.wait(timeout=1.0), 1.0)

    @pytest.mark.asyncio
    async def test_cancelled_wait_returns_reservation(self, limiter, clock):
        """Test that cancelling a waiter gives its token back."""
        await limiter.wait()
        waiter = asyncio.create_task(limiter.wait())
        await asyncio.sleep(0.01)
        assert limiter.get_status()["tokens"] == -1.0

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert limiter.get_status()["tokens"] == 0.0
