"""Minimum-interval gate between requests to one upstream source."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Enforces a minimum interval between consecutive outbound requests.

    Not a token bucket: each call simply waits until ``min_interval`` has
    elapsed since the previous call. The slot is reserved before sleeping,
    so coroutines racing on the same event loop are spaced out as well.
    No lock is needed while everything runs on one event loop.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the limiter.

        Args:
            min_interval: Seconds required between two requests.
            clock: Time source in seconds.
            sleep: Coroutine used to wait.
        """
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None

    @classmethod
    def from_rate(cls, requests_per_second: float, **kwargs) -> "RateLimiter":
        """Build a limiter from a request rate, e.g. 0.5 req/s -> 2 s interval."""
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be > 0")
        return cls(1.0 / requests_per_second, **kwargs)

    async def acquire(self) -> float:
        """
        Wait for the next request slot.

        Returns:
            Seconds spent waiting.
        """
        now = self._clock()
        slot = now if self._last is None else max(now, self._last + self.min_interval)
        self._last = slot
        wait = slot - now
        if wait > 0:
            logger.debug(f"Rate limit: waiting {wait:.2f}s")
            await self._sleep(wait)
        return wait
