"""Fixed-floor rate limiter for REST pagination."""

from __future__ import annotations

import time
from collections.abc import Callable

from kline_fetcher.core.logging import get_logger

logger = get_logger(__name__)


class MinIntervalRateLimiter:
    """Keeps at least ``min_interval`` seconds between request starts.

    Not adaptive: it assumes a flat request weight limit and ignores any
    rate-limit headers the server returns. ``clock`` and ``sleep`` are
    injectable so tests can run without real waiting.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self._started_at: float | None = None
        self.total_waited = 0.0

    def mark(self) -> None:
        """Record the start of a request cycle."""
        self._started_at = self._clock()

    def wait(self) -> float:
        """Block for whatever is left of the interval since the last mark().

        Returns:
            Seconds slept (0.0 if the cycle already took long enough).
        """
        if self._started_at is None:
            return 0.0
        elapsed = self._clock() - self._started_at
        remaining = self._min_interval - elapsed
        if remaining <= 0:
            return 0.0
        logger.debug("rate_limiter.wait", seconds=round(remaining, 3))
        self._sleep(remaining)
        self.total_waited += remaining
        return remaining
