"""In-memory pools of Netflix titles keyed by country and content type."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from ..config import Settings
from ..countries import CONTENT_TYPES
from ..models import ContentType, SearchPage, Title
from ..utils import utc_isoformat
from .streaming_availability import UpstreamError

logger = logging.getLogger(__name__)

REFRESH_ORDER_BY = "popularity_1year"
REFRESH_ORDER_DIRECTION = "desc"


class TitleSource(Protocol):
    """Anything able to serve paginated catalog searches."""

    async def search_shows(
        self,
        country: str,
        *,
        content_type: ContentType | None = None,
        order_by: Any = None,
        order_direction: Any = None,
        cursor: str | None = None,
    ) -> SearchPage: ...


@dataclass(frozen=True, slots=True)
class PoolKey:
    """Identifies a pool; ``content_type`` of ``None`` means any type."""

    country: str
    content_type: ContentType | None = None

    def __str__(self) -> str:
        return f"{self.country}-{self.content_type or 'any'}"


@dataclass(frozen=True, slots=True)
class Pool:
    """Snapshot of a pool; replaced wholesale on every refresh."""

    key: PoolKey
    titles: tuple[Title, ...] = ()
    last_update: float = 0.0


class PoolCache:
    """Keeps per-country pools populated from the catalog API.

    Reads never wait on the upstream: an expired or empty pool reports no
    titles and schedules a background refresh instead. At most one refresh
    runs per pool key at any time.
    """

    def __init__(
        self,
        source: TitleSource,
        *,
        countries: Iterable[str],
        pool_size: int = 200,
        min_pool_size: int = 50,
        ttl_seconds: float = 6 * 3_600,
        max_refresh_pages: int = 10,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self._source = source
        self._pool_size = pool_size
        self._min_pool_size = min_pool_size
        self._ttl_seconds = ttl_seconds
        self._max_refresh_pages = max_refresh_pages
        self._clock = clock
        self._rng = rng or random.Random()

        self._pools: dict[PoolKey, Pool] = {}
        for country in countries:
            for content_type in CONTENT_TYPES:
                key = PoolKey(country, content_type)
                self._pools[key] = Pool(key)

        self._refreshing: set[PoolKey] = set()
        self._refresh_jobs: dict[PoolKey, asyncio.Task[bool]] = {}
        self._hit_count = 0
        self._miss_count = 0

    @classmethod
    def from_settings(
        cls, settings: Settings, source: TitleSource, **overrides: Any
    ) -> "PoolCache":
        options: dict[str, Any] = {
            "countries": settings.supported_countries,
            "pool_size": settings.pool_size,
            "min_pool_size": settings.min_pool_size,
            "ttl_seconds": settings.cache_ttl_seconds,
            "max_refresh_pages": settings.max_refresh_pages,
        }
        options.update(overrides)
        return cls(source, **options)

    @property
    def keys(self) -> tuple[PoolKey, ...]:
        return tuple(self._pools)

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def min_pool_size(self) -> int:
        return self._min_pool_size

    def pool(self, key: PoolKey) -> Pool | None:
        return self._pools.get(key)

    def is_expired(self, pool: Pool) -> bool:
        return self._clock() - pool.last_update > self._ttl_seconds

    def is_refreshing(self, key: PoolKey) -> bool:
        return key in self._refreshing

    async def get_titles(
        self, country: str, content_type: ContentType | None = None
    ) -> tuple[Title, ...]:
        """Return the current titles of a pool, scheduling refreshes as needed."""

        key = PoolKey(country, content_type)
        pool = self._pools.get(key)
        if pool is None or not pool.titles or self.is_expired(pool):
            self._miss_count += 1
            self.request_refresh(key)
            return ()

        if len(pool.titles) < self._min_pool_size:
            self.request_refresh(key)

        self._hit_count += 1
        return pool.titles

    async def get_random_title(
        self, country: str, content_type: ContentType | None = None
    ) -> Title | None:
        titles = await self.get_titles(country, content_type)
        if not titles:
            return None
        return self._rng.choice(titles)

    async def get_random_titles(
        self,
        country: str,
        count: int = 5,
        content_type: ContentType | None = None,
    ) -> list[Title]:
        """Return up to ``count`` distinct titles in random order."""

        key = PoolKey(country, content_type)
        pool = self._pools.get(key)
        if pool is None or not pool.titles or self.is_expired(pool):
            return []
        return self._rng.sample(pool.titles, min(count, len(pool.titles)))

    def request_refresh(self, key: PoolKey) -> None:
        """Refresh ``key`` in the background unless a refresh is already running."""

        if key not in self._pools or key in self._refreshing:
            return
        existing = self._refresh_jobs.get(key)
        if existing and not existing.done():
            return

        async def _runner() -> bool:
            try:
                return await self.refresh(key)
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Background refresh for pool %s failed: %s", key, exc)
                return False
            finally:
                self._refresh_jobs.pop(key, None)

        self._refresh_jobs[key] = asyncio.create_task(_runner())

    async def refresh(self, key: PoolKey) -> bool:
        """Repopulate one pool from the catalog API.

        Returns ``True`` when the pool was replaced, ``False`` when the call
        was skipped because the key has no pool, another refresh is in flight
        or nothing usable came back.
        """

        if key not in self._pools:
            logger.warning("Ignoring refresh for unknown pool %s", key)
            return False
        if key in self._refreshing:
            logger.info("Pool %s already refreshing, skipping", key)
            return False

        self._refreshing.add(key)
        try:
            logger.info("Refreshing pool %s", key)
            titles = await self._collect_titles(key)
            if not titles:
                logger.warning("No titles found for pool %s", key)
                return False

            pool = Pool(
                key=key,
                titles=tuple(titles[: self._pool_size]),
                last_update=self._clock(),
            )
            self._pools[key] = pool
            logger.info("Pool %s refreshed with %d titles", key, len(pool.titles))
            return True
        finally:
            self._refreshing.discard(key)

    async def _collect_titles(self, key: PoolKey) -> list[Title]:
        titles: list[Title] = []
        cursor: str | None = None
        attempts = 0

        while len(titles) < self._pool_size and attempts < self._max_refresh_pages:
            try:
                page = await self._source.search_shows(
                    key.country,
                    content_type=key.content_type,
                    order_by=REFRESH_ORDER_BY,
                    order_direction=REFRESH_ORDER_DIRECTION,
                    cursor=cursor,
                )
            except UpstreamError as exc:
                logger.warning(
                    "Error fetching page %d for pool %s: %s", attempts, key, exc
                )
                break

            if not page.titles:
                break

            titles.extend(title for title in page.titles if title.has_required_fields())

            if not page.has_more or not page.next_cursor:
                break
            cursor = page.next_cursor
            attempts += 1

        return titles

    def stats(self) -> dict[str, Any]:
        """Return counters and per-pool freshness for monitoring."""

        total_requests = self._hit_count + self._miss_count
        hit_rate = self._hit_count / total_requests if total_requests else 0.0

        pool_sizes: dict[str, int] = {}
        pool_info: dict[str, dict[str, Any]] = {}
        for key, pool in self._pools.items():
            if pool.last_update:
                pool_sizes[str(key)] = len(pool.titles)
            pool_info[str(key)] = {
                "size": len(pool.titles),
                "lastUpdate": utc_isoformat(pool.last_update),
                "isExpired": self.is_expired(pool),
                "isRefreshing": key in self._refreshing,
            }

        return {
            "totalShows": sum(len(pool.titles) for pool in self._pools.values()),
            "poolSizes": pool_sizes,
            "hitCount": self._hit_count,
            "missCount": self._miss_count,
            "hitRate": round(hit_rate, 2),
            "poolInfo": pool_info,
        }

    def health_check(self) -> tuple[str, dict[str, Any]]:
        """Classify the cache as ``healthy``, ``degraded`` or ``unhealthy``."""

        stats = self.stats()
        if stats["totalShows"] == 0 or not stats["poolSizes"]:
            return "unhealthy", {"reason": "No cached shows available", "stats": stats}
        if stats["hitRate"] < 0.8 or stats["totalShows"] < self._min_pool_size * 4:
            return "degraded", {
                "reason": "Low hit rate or insufficient cache size",
                "stats": stats,
            }
        return "healthy", {"stats": stats}

    def clear(self) -> None:
        """Drop every cached title and reset the counters."""

        for key in self._pools:
            self._pools[key] = Pool(key)
        self._hit_count = 0
        self._miss_count = 0
        logger.info("All pools cleared")

    async def wait_for_refreshes(self) -> None:
        """Wait until every background refresh scheduled so far has finished."""

        jobs = list(self._refresh_jobs.values())
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)

    async def close(self) -> None:
        """Cancel background refreshes that are still running."""

        jobs = list(self._refresh_jobs.values())
        for job in jobs:
            job.cancel()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)
        self._refresh_jobs.clear()
