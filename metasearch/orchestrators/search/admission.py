"""Process-wide admission control for outbound backend calls.

One AdmissionGate is created per process and injected into every retrieval
session. Sessions borrow permits around individual backend calls; a permit is
never held across tier boundaries.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket: `requests_per_second` refill, at most `burst_size` tokens."""

    def __init__(self, requests_per_second: float = 10.0, burst_size: int = 10) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if burst_size < 1:
            raise ValueError("burst_size must be at least 1")
        self._max_tokens = float(burst_size)
        self._refill_rate = float(requests_per_second)
        self._tokens = float(burst_size)
        self._last_refill = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(self._max_tokens, self._tokens + elapsed * self._refill_rate)
            self._last_refill = now

    def try_acquire(self) -> bool:
        self._refill()
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    async def acquire(self) -> None:
        while not self.try_acquire():
            await asyncio.sleep(1.0 / self._refill_rate)

    def available_tokens(self) -> float:
        self._refill()
        return self._tokens


class AdmissionGate:
    """Counting gate limiting simultaneous outbound requests across all sessions."""

    def __init__(
        self,
        max_concurrent: int = 8,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._rate_limiter = rate_limiter
        self._in_flight = 0

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def available(self) -> int:
        return self._max_concurrent - self._in_flight

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        """Hold one permit for the duration of the block; released on every exit path."""
        async with self._semaphore:
            self._in_flight += 1
            try:
                if self._rate_limiter is not None:
                    await self._rate_limiter.acquire()
                yield
            finally:
                self._in_flight -= 1
