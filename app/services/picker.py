"""Weighted random selection of a single title per request."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Sequence

from ..countries import CONTENT_TYPES
from ..models import ContentType, DiscoverResult, Title
from .history import PickHistory
from .pool_cache import PoolCache

logger = logging.getLogger(__name__)

DEFAULT_MIN_WEIGHT = 30.0


class NoContentError(LookupError):
    """Raised when no title is available even after relaxing the filters."""


@dataclass(slots=True)
class PickerStats:
    total_picks: int = 0
    average_response_time: float = 0.0
    last_pick_timestamp: float = 0.0


def weighted_choice(
    titles: Sequence[Title],
    *,
    min_weight: float = DEFAULT_MIN_WEIGHT,
    rng: random.Random | None = None,
) -> Title:
    """Pick one title with probability proportional to ``max(rating, min_weight)``.

    A linear scan over the cumulative weights; pools are small enough that
    nothing cleverer pays off.
    """

    if not titles:
        raise ValueError("Cannot choose from an empty sequence of titles")

    weights = [max(title.rating, min_weight) for title in titles]
    threshold = (rng or random).random() * sum(weights)

    cumulative = 0.0
    for title, weight in zip(titles, weights):
        cumulative += weight
        if threshold <= cumulative:
            return title
    return titles[-1]


class RandomPicker:
    """Selects titles from the pool cache while avoiding recent repeats."""

    def __init__(
        self,
        cache: PoolCache,
        history: PickHistory,
        *,
        min_weight: float = DEFAULT_MIN_WEIGHT,
        rng: random.Random | None = None,
    ) -> None:
        self._cache = cache
        self._history = history
        self._min_weight = min_weight
        self._rng = rng or random.Random()
        self._stats = PickerStats()

    async def discover(
        self,
        country: str,
        content_type: ContentType | None = None,
        *,
        min_rating: float | None = None,
        exclude_recent: bool = True,
        user_id: str | None = None,
    ) -> DiscoverResult:
        """Return one title, relaxing the filters once before giving up."""

        started = time.perf_counter()
        relaxed = False

        title = await self.select(
            country,
            content_type,
            min_rating=min_rating,
            exclude_recent=exclude_recent,
            user_id=user_id,
        )
        if title is None:
            relaxed = True
            title = await self.select(
                country,
                content_type,
                min_rating=None,
                exclude_recent=False,
                user_id=user_id,
            )
        if title is None:
            raise NoContentError(
                f"No Netflix {content_type or 'content'} found for {country}"
            )

        # only strict picks are remembered
        if user_id and not relaxed:
            self._history.record(user_id, title)

        elapsed_ms = (time.perf_counter() - started) * 1_000
        self._record_pick(elapsed_ms)
        return DiscoverResult(
            title=title,
            country=country,
            from_cache=True,
            response_time_ms=elapsed_ms,
            relaxed=relaxed,
        )

    async def select(
        self,
        country: str,
        content_type: ContentType | None = None,
        *,
        min_rating: float | None = None,
        exclude_recent: bool = True,
        user_id: str | None = None,
    ) -> Title | None:
        """Run one filter-and-draw pass; ``None`` when nothing qualifies."""

        candidates = await self._gather_candidates(country, content_type)
        if not candidates:
            logger.warning(
                "No candidates found for %s %s", country, content_type or "any"
            )
            return None

        if min_rating:
            candidates = [title for title in candidates if title.rating >= min_rating]

        if exclude_recent and user_id:
            recent_ids = self._history.recent_ids(user_id)
            candidates = [title for title in candidates if title.id not in recent_ids]

        candidates = [title for title in candidates if title.passes_quality_filter()]

        if not candidates:
            logger.warning(
                "No shows passed filters for %s %s", country, content_type or "any"
            )
            return None

        return weighted_choice(candidates, min_weight=self._min_weight, rng=self._rng)

    async def _gather_candidates(
        self, country: str, content_type: ContentType | None
    ) -> list[Title]:
        content_types = (content_type,) if content_type else CONTENT_TYPES
        candidates: list[Title] = []
        for pool_type in content_types:
            candidates.extend(await self._cache.get_titles(country, pool_type))
        return candidates

    def _record_pick(self, elapsed_ms: float) -> None:
        stats = self._stats
        stats.total_picks += 1
        stats.last_pick_timestamp = time.time()
        stats.average_response_time += (
            elapsed_ms - stats.average_response_time
        ) / stats.total_picks

    def stats(self) -> PickerStats:
        return PickerStats(
            total_picks=self._stats.total_picks,
            average_response_time=self._stats.average_response_time,
            last_pick_timestamp=self._stats.last_pick_timestamp,
        )

    def clear_user_history(self, user_id: str) -> None:
        self._history.forget(user_id)
