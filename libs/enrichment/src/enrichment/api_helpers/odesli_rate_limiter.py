"""Odesli request rate limiting utilities.

This module provides a process-wide shared async rate limiter used by all Odesli
API calls. It is acquired *before* each request, so every strategy instance
shares a single quota budget.
"""

import asyncio
import time
from collections import deque
from functools import lru_cache


class RequestRateLimiter:
    """Asynchronous rate limiter for outbound requests.

    This limiter throttles request *start times* to respect:
    - A minimum interval between requests (e.g., 1s).
    - A maximum number of requests per rolling window (60 seconds by default).

    The limiter is safe to share across tasks in a single process.

    Args:
        min_interval_seconds: Minimum spacing between request starts.
        max_per_window: Maximum request starts allowed in the rolling window.
        window_seconds: Length of the rolling window.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float = 1.0,
        max_per_window: int = 10,
        window_seconds: float = 60.0,
    ) -> None:
        self._min_interval = float(min_interval_seconds)
        self._max_per_window = int(max_per_window)
        self._window = float(window_seconds)
        self._lock = asyncio.Lock()
        self._last: float | None = None
        self._recent: deque[float] = deque()

    def _evict(self, now: float) -> None:
        cutoff = now - self._window
        while self._recent and self._recent[0] <= cutoff:
            self._recent.popleft()

    async def acquire(self) -> None:
        """Wait until a new request can be started under the configured limits.

        This method blocks cooperatively (via `asyncio.sleep`) and is safe to call
        concurrently from multiple tasks.
        """
        async with self._lock:
            now = time.time()
            self._evict(now)

            if self._max_per_window > 0 and len(self._recent) >= self._max_per_window:
                oldest = self._recent[0]
                sleep_for = max(0.0, (oldest + self._window) - now)
                if sleep_for > 0:
                    await asyncio.sleep(sleep_for)
                    now = time.time()
                    self._evict(now)

            if self._last is not None and self._min_interval > 0:
                sleep_for = (self._last + self._min_interval) - now
                if sleep_for > 0:
                    await asyncio.sleep(sleep_for)
                    now = time.time()

            self._last = now
            self._recent.append(now)


DEFAULT_MIN_INTERVAL_SECONDS = 1.0
DEFAULT_MAX_PER_MINUTE = 10


@lru_cache(maxsize=1)
def get_shared_odesli_rate_limiter() -> RequestRateLimiter:
    """Return a process-wide shared limiter instance for all Odesli requests.

    This is the default limiter used by `OdesliClient` unless explicitly overridden.

    Returns:
        RequestRateLimiter: A singleton limiter for the current Python process.
    """
    return RequestRateLimiter(
        min_interval_seconds=DEFAULT_MIN_INTERVAL_SECONDS,
        max_per_window=DEFAULT_MAX_PER_MINUTE,
    )
