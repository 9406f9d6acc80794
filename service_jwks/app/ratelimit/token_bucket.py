"""
Token bucket rate limiter for on-demand JWK Set refreshes.
"""

import asyncio
import time
from typing import Callable, Dict, Any, Optional

from shared.errors import RateLimitWaitError
from shared.logging import get_logger


def every(interval: float) -> float:
    """Convert a minimum interval between events into a rate per second."""
    if interval <= 0:
        return float("inf")
    return 1.0 / interval


class TokenBucketRateLimiter:
    """In-process token bucket.

    The bucket holds at most ``burst`` tokens and starts full; tokens come
    back at ``rate`` per second. ``wait`` reserves a token and sleeps until
    the reservation matures.
    """

    def __init__(self, rate: float, burst: int = 1, clock: Callable[[], float] = time.monotonic):
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = asyncio.Lock()
        self.logger = get_logger("jwks.rate_limiter")

    def _advance(self, now: float) -> None:
        elapsed = max(0.0, now - self._last)
        self._last = now
        if self.rate == float("inf"):
            self._tokens = float(self.burst)
        else:
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)

    def _delay_for(self, tokens: float) -> float:
        if tokens >= 0:
            return 0.0
        if self.rate <= 0:
            return float("inf")
        return -tokens / self.rate

    def allow(self) -> bool:
        """Take a token if one is available right now."""
        self._advance(self._clock())
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    async def wait(self, timeout: Optional[float] = None) -> None:
        """Block until a token is available.

        Raises ``RateLimitWaitError`` straight away, without consuming a
        token, when the token would not be available within ``timeout``
        seconds. Cancelling the waiting task gives the reservation back.
        """
        async with self._lock:
            self._advance(self._clock())
            delay = self._delay_for(self._tokens - 1)
            if timeout is not None and delay > timeout:
                self.logger.warning(
                    "Rate limit wait would exceed deadline",
                    delay_seconds=delay,
                    timeout_seconds=timeout
                )
                raise RateLimitWaitError(
                    "rate limit wait would exceed deadline",
                    {"delay_seconds": delay, "timeout_seconds": timeout}
                )
            self._tokens -= 1

        if delay <= 0:
            return
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            async with self._lock:
                self._advance(self._clock())
                self._tokens = min(float(self.burst), self._tokens + 1)
            raise

    def get_status(self) -> Dict[str, Any]:
        """Get current limiter status."""
        self._advance(self._clock())
        return {
            "rate": self.rate,
            "burst": self.burst,
            "tokens": self._tokens,
        }
