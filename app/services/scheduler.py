"""Recurring background refresh of the title pools."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Iterable

from .pool_cache import PoolCache, PoolKey

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Runs one staggered, recurring refresh task per pool."""

    def __init__(
        self,
        cache: PoolCache,
        *,
        interval_seconds: float = 21_600,
        stagger_seconds: float = 10.0,
        keys: Iterable[PoolKey] | None = None,
    ) -> None:
        self._cache = cache
        self._interval_seconds = interval_seconds
        self._stagger_seconds = stagger_seconds
        self._keys = tuple(keys) if keys is not None else cache.keys
        self._tasks: dict[PoolKey, asyncio.Task[None]] = {}

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def start(self) -> None:
        """Launch the per-pool loops; the n-th pool waits ``n * stagger`` first."""

        if self._tasks:
            return
        for index, key in enumerate(self._keys):
            delay = index * self._stagger_seconds
            self._tasks[key] = asyncio.create_task(
                self._refresh_loop(key, delay), name=f"refresh-{key}"
            )
        logger.info(
            "Scheduled %d pool refreshes every %ss", len(self._tasks), self._interval_seconds
        )

    async def stop(self) -> None:
        """Cancel every loop and wait for them to finish."""

        if not self._tasks:
            return
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

    async def run_once(self) -> dict[PoolKey, bool]:
        """Refresh every pool concurrently and report which were replaced."""

        results = await asyncio.gather(
            *(self._refresh_safely(key) for key in self._keys)
        )
        return dict(zip(self._keys, results))

    async def _refresh_loop(self, key: PoolKey, delay: float) -> None:
        if delay:
            await asyncio.sleep(delay)
        while True:
            await self._refresh_safely(key)
            await asyncio.sleep(self._interval_seconds)

    async def _refresh_safely(self, key: PoolKey) -> bool:
        try:
            return await self._cache.refresh(key)
        except Exception as exc:  # pragma: no cover - background safety net
            logger.exception("Scheduled refresh for pool %s failed: %s", key, exc)
            return False
