"""In-memory fixed-window request limiter.

Per-process only: running several workers multiplies the effective limit.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _Window:
    start: int
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Counts requests per key inside aligned windows of ``window_seconds``.

    Windows are aligned to multiples of ``window_seconds`` since the epoch,
    so every key shares the same reset instant. Windows from previous
    periods are dropped lazily, which keeps memory bounded by the number
    of keys active in the current window.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._windows: dict[str, _Window] = {}
        self._current_start: int | None = None

    @property
    def limit(self) -> int:
        return self._limit

    def _window_start(self, now: float) -> int:
        return int(now // self._window_seconds) * self._window_seconds

    def _prune_locked(self, window_start: int) -> None:
        if self._current_start == window_start:
            return
        self._windows = {k: w for k, w in self._windows.items() if w.start == window_start}
        self._current_start = window_start

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume ``cost`` units for ``key``.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        window_start = self._window_start(now)
        reset_at = window_start + self._window_seconds

        with self._lock:
            self._prune_locked(window_start)
            window = self._windows.setdefault(key, _Window(start=window_start, count=0))

            if window.count + cost <= self._limit:
                window.count += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=self._limit - window.count,
                    reset_at=reset_at,
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=max(0, self._limit - window.count),
                reset_at=reset_at,
                retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
            )

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)
