"""In-process fixed-window rate limiting for the discover endpoint."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Allows ``limit`` requests per client within each ``window_seconds``."""

    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._next_prune = clock() + window_seconds

    def __len__(self) -> int:
        return len(self._windows)

    def allow(self, key: str) -> bool:
        """Count a request for ``key`` and report whether it may proceed."""

        now = self._clock()
        if now >= self._next_prune:
            self.prune()

        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self._window_seconds)
            return True

        if window.count < self._limit:
            window.count += 1
            return True

        logger.warning("Rate limit exceeded for %s", key)
        return False

    def prune(self) -> None:
        """Forget clients whose window ended more than a window ago."""

        now = self._clock()
        stale = [
            key
            for key, window in self._windows.items()
            if now > window.reset_at + self._window_seconds
        ]
        for key in stale:
            self._windows.pop(key, None)
        self._next_prune = now + self._window_seconds
