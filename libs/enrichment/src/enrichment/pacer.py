"""Batch pacing for enrichment runs.

The pacer is consulted before every batch. It keeps batches at least
``batch_delay`` seconds apart, and waits longer when the next batch would push
the number of external calls in the rolling ``interval_length`` window over
``max_per_interval``. One pacer serves every run of a kind, so a restarted run
still sees the calls of the run before it.

It is a conservative token-bucket approximation: it may leave some of the
budget unused but never lets the calls in any interval exceed the cap.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable

from common.config import PacingConfig

logger = logging.getLogger(__name__)


class Pacer:
    """Inter-batch delay plus a rolling per-interval cap on external calls.

    Args:
        batch_delay: Seconds to wait between batches.
        max_per_interval: Maximum external calls in any rolling interval.
        interval_length: Length of the rolling interval in seconds.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        *,
        batch_delay: float,
        max_per_interval: int,
        interval_length: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_per_interval < 1:
            raise ValueError("max_per_interval must be >= 1")
        if interval_length <= 0:
            raise ValueError("interval_length must be > 0")
        self.batch_delay = max(0.0, float(batch_delay))
        self.max_per_interval = int(max_per_interval)
        self.interval_length = float(interval_length)
        self._clock = clock
        self._calls: deque[tuple[float, int]] = deque()
        self._last_batch: float | None = None

    @classmethod
    def from_config(cls, config: PacingConfig) -> "Pacer":
        return cls(
            batch_delay=config.batch_delay_seconds,
            max_per_interval=config.max_per_interval,
            interval_length=config.interval_seconds,
        )

    def _evict(self, now: float) -> None:
        cutoff = now - self.interval_length
        while self._calls and self._calls[0][0] <= cutoff:
            self._calls.popleft()

    def calls_in_window(self) -> int:
        """Number of external calls recorded in the current rolling interval."""
        self._evict(self._clock())
        return sum(calls for _, calls in self._calls)

    def record(self, calls: int) -> None:
        """Note that a batch issuing ``calls`` external calls just finished."""
        now = self._clock()
        self._last_batch = now
        if calls > 0:
            self._calls.append((now, calls))

    def delay_before(self, next_batch_size: int) -> float:
        """Seconds to wait before a batch of ``next_batch_size`` calls may start.

        Raises:
            ValueError: If a single batch could never fit under the cap.
        """
        if next_batch_size > self.max_per_interval:
            raise ValueError(
                f"Batch of {next_batch_size} exceeds max_per_interval "
                f"({self.max_per_interval})"
            )
        now = self._clock()
        self._evict(now)
        in_window = sum(calls for _, calls in self._calls)
        delay = 0.0
        if self._last_batch is not None:
            delay = max(0.0, self._last_batch + self.batch_delay - now)

        excess = in_window + next_batch_size - self.max_per_interval
        if excess > 0:
            # Wait until enough of the oldest calls have left the window.
            freed = 0
            for timestamp, calls in self._calls:
                freed += calls
                if freed >= excess:
                    delay = max(delay, timestamp + self.interval_length - now)
                    break
        return delay

    async def wait(
        self, next_batch_size: int, stop_event: asyncio.Event | None = None
    ) -> bool:
        """Block until the next batch may start.

        Args:
            next_batch_size: Maximum external calls the next batch will issue.
            stop_event: When set, the wait ends early.

        Returns:
            False if the wait was cut short by ``stop_event``, True otherwise.
        """
        delay = self.delay_before(next_batch_size)
        if delay > self.batch_delay:
            logger.info(
                "Rate cap of %s calls per %ss reached, pausing for %.0f seconds",
                self.max_per_interval,
                self.interval_length,
                delay,
            )
        if stop_event is not None and stop_event.is_set():
            return False
        if delay <= 0:
            return True
        if stop_event is None:
            await asyncio.sleep(delay)
            return True
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except TimeoutError:
            return True
        return False
