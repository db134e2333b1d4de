"""
Rate Limiter - Token bucket shared by every worker using one client.

Notion allows an average of three requests per second per integration.
"""

import logging
import threading
import time
from typing import Callable


class RateLimiter:
    """
    Thread-safe token bucket.

    ``acquire`` reserves a token under the lock and sleeps outside it, so
    waiting workers queue up in reservation order instead of spinning.
    """

    def __init__(
        self,
        requests_per_second: float = 3.0,
        burst: int = 0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")

        self.rate = float(requests_per_second)
        self.capacity = float(burst or max(1, int(requests_per_second)))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = self.capacity
        self._updated = clock()
        self.logger = logging.getLogger("RateLimiter")

    @property
    def budget(self) -> int:
        """Requests that may be issued back to back."""
        return int(self.capacity)

    def acquire(self) -> float:
        """
        Take one token, waiting if none is available.

        Returns:
            Seconds spent waiting
        """
        with self._lock:
            now = self._clock()
            self._tokens = min(self.capacity, self._tokens + (now - self._updated) * self.rate)
            self._updated = now
            self._tokens -= 1
            wait = 0.0 if self._tokens >= 0 else -self._tokens / self.rate

        if wait > 0:
            self.logger.debug(f"Throttled for {wait:.3f}s")
            self._sleep(wait)
        return wait
