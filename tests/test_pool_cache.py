"""Behaviour of the in-memory title pools and their refresh cycle."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from app.config import Settings
from app.models import ImageSet, SearchPage, Title
from app.services.pool_cache import PoolCache, PoolKey
from app.services.streaming_availability import StreamingAvailabilityClient, UpstreamError

MOVIES = PoolKey("us", "movie")


def _title(index: int, **overrides: Any) -> Title:
    data: dict[str, Any] = {
        "id": f"t{index}",
        "title": f"Title {index}",
        "overview": "Overview",
        "show_type": "movie",
        "rating": 70,
        "netflix_link": f"https://www.netflix.com/title/{index}",
        "image_set": ImageSet(vertical_poster={"w480": f"https://img.example/{index}.jpg"}),
    }
    data.update(overrides)
    return Title(**data)


def _page(start: int, count: int, *, has_more: bool = True) -> SearchPage:
    return SearchPage(
        titles=[_title(start + offset) for offset in range(count)],
        has_more=has_more,
        next_cursor=f"cursor-{start + count}" if has_more else None,
    )


class ScriptedSource:
    """Serves prepared pages (or raises prepared errors) in order."""

    def __init__(self, responses: list[SearchPage | Exception] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self.gate: asyncio.Event | None = None

    async def search_shows(self, country: str, **kwargs: Any) -> SearchPage:
        self.calls.append({"country": country, **kwargs})
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            return SearchPage()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _cache(source: ScriptedSource, **options: Any) -> PoolCache:
    options.setdefault("countries", ["us"])
    options.setdefault("pool_size", 5)
    options.setdefault("min_pool_size", 0)
    return PoolCache(source, **options)


def test_pools_created_for_every_country_and_type() -> None:
    cache = _cache(ScriptedSource(), countries=["us", "fr"])

    assert [str(key) for key in cache.keys] == ["us-movie", "us-series", "fr-movie", "fr-series"]
    assert all(cache.pool(key).titles == () for key in cache.keys)


def test_refresh_never_exceeds_pool_size() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 3), _page(3, 3), _page(6, 3)])
        cache = _cache(source, pool_size=5)

        assert await cache.refresh(MOVIES) is True

        pool = cache.pool(MOVIES)
        assert len(pool.titles) == 5
        assert [title.id for title in pool.titles] == ["t0", "t1", "t2", "t3", "t4"]
        assert len(source.calls) == 2
        assert source.calls[0]["cursor"] is None
        assert source.calls[1]["cursor"] == "cursor-3"
        assert source.calls[0]["order_by"] == "popularity_1year"

    asyncio.run(runner())


def test_refresh_stops_after_page_ceiling() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(index * 2, 2) for index in range(20)])
        cache = _cache(source, pool_size=100, max_refresh_pages=3)

        await cache.refresh(MOVIES)

        assert len(source.calls) == 3
        assert len(cache.pool(MOVIES).titles) == 6

    asyncio.run(runner())


def test_refresh_stops_when_upstream_has_no_more_pages() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 2, has_more=False), _page(2, 2)])
        cache = _cache(source, pool_size=100)

        await cache.refresh(MOVIES)

        assert len(source.calls) == 1
        assert len(cache.pool(MOVIES).titles) == 2

    asyncio.run(runner())


def test_refresh_drops_incomplete_titles() -> None:
    async def runner() -> None:
        page = SearchPage(
            titles=[
                _title(1),
                _title(2, netflix_link=None),
                _title(3, overview=""),
                _title(4, image_set=ImageSet()),
            ],
            has_more=False,
        )
        cache = _cache(ScriptedSource([page]), pool_size=10)

        await cache.refresh(MOVIES)

        assert [title.id for title in cache.pool(MOVIES).titles] == ["t1"]

    asyncio.run(runner())


def test_upstream_error_keeps_partial_results() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 2), UpstreamError("boom", status_code=500), _page(2, 2)])
        cache = _cache(source, pool_size=10)

        assert await cache.refresh(MOVIES) is True

        assert [title.id for title in cache.pool(MOVIES).titles] == ["t0", "t1"]
        assert len(source.calls) == 2
        assert not cache.is_refreshing(MOVIES)

    asyncio.run(runner())


def test_malformed_record_on_later_page_keeps_collected_titles() -> None:
    def _show(show_id: str, **overrides: Any) -> dict[str, Any]:
        show = {
            "id": show_id,
            "title": f"Show {show_id}",
            "overview": "Overview",
            "showType": "movie",
            "rating": 70,
            "imageSet": {"verticalPoster": {"w480": f"https://img.example/{show_id}.jpg"}},
            "streamingOptions": {
                "us": [{"service": {"id": "netflix"}, "link": f"https://www.netflix.com/title/{show_id}"}]
            },
        }
        show.update(overrides)
        return show

    pages = [
        {"shows": [_show("1"), _show("2")], "hasMore": True, "nextCursor": "next"},
        {"shows": [_show("3", cast=5)], "hasMore": False},
    ]

    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages.pop(0))

    async def runner() -> None:
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
            client = StreamingAvailabilityClient(
                Settings(_env_file=None, STREAMING_AVAILABILITY_API_KEY="test-key"),  # type: ignore[call-arg]
                http_client,
            )
            cache = PoolCache(client, countries=["us"], pool_size=10, min_pool_size=0)

            assert await cache.refresh(MOVIES) is True

        assert [title.id for title in cache.pool(MOVIES).titles] == ["1", "2"]
        assert not cache.is_refreshing(MOVIES)

    asyncio.run(runner())


def test_empty_refresh_leaves_existing_pool_untouched() -> None:
    async def runner() -> None:
        clock = FakeClock()
        source = ScriptedSource([_page(0, 3, has_more=False)])
        cache = _cache(source, clock=clock)
        await cache.refresh(MOVIES)
        before = cache.pool(MOVIES)

        clock.now += 60
        source.responses = [UpstreamError("down")]
        assert await cache.refresh(MOVIES) is False

        assert cache.pool(MOVIES) == before
        assert cache.pool(MOVIES).last_update == before.last_update

    asyncio.run(runner())


def test_concurrent_refresh_runs_a_single_fetch_sequence() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 3, has_more=False)])
        source.gate = asyncio.Event()
        cache = _cache(source)

        first = asyncio.create_task(cache.refresh(MOVIES))
        await asyncio.sleep(0)
        assert cache.is_refreshing(MOVIES)

        second = await cache.refresh(MOVIES)
        source.gate.set()

        assert await first is True
        assert second is False
        assert len(source.calls) == 1
        assert not cache.is_refreshing(MOVIES)

    asyncio.run(runner())


def test_refreshes_for_different_pools_run_concurrently() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 2, has_more=False), _page(10, 2, has_more=False)])
        source.gate = asyncio.Event()
        cache = _cache(source)
        series = PoolKey("us", "series")

        tasks = [
            asyncio.create_task(cache.refresh(MOVIES)),
            asyncio.create_task(cache.refresh(series)),
        ]
        await asyncio.sleep(0)
        assert cache.is_refreshing(MOVIES) and cache.is_refreshing(series)
        source.gate.set()

        assert await asyncio.gather(*tasks) == [True, True]

    asyncio.run(runner())


def test_reading_empty_pool_misses_and_triggers_refresh() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 3, has_more=False)])
        cache = _cache(source)

        assert await cache.get_titles("us", "movie") == ()
        await cache.wait_for_refreshes()

        assert len(cache.pool(MOVIES).titles) == 3
        assert len(await cache.get_titles("us", "movie")) == 3
        stats = cache.stats()
        assert stats["missCount"] == 1
        assert stats["hitCount"] == 1

    asyncio.run(runner())


def test_unknown_pool_keys_are_never_created() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 3, has_more=False)])
        cache = _cache(source)

        assert await cache.get_titles("us", None) == ()
        assert await cache.get_titles("zz", "movie") == ()
        await cache.wait_for_refreshes()
        assert await cache.refresh(PoolKey("zz", "series")) is False

        assert cache.keys == (MOVIES, PoolKey("us", "series"))
        assert source.calls == []
        assert cache.stats()["missCount"] == 2

    asyncio.run(runner())


def test_expired_pool_is_reported_empty_until_refreshed() -> None:
    async def runner() -> None:
        clock = FakeClock()
        source = ScriptedSource([_page(0, 3, has_more=False), _page(100, 2, has_more=False)])
        cache = _cache(source, clock=clock, ttl_seconds=3_600)
        await cache.refresh(MOVIES)

        clock.now += 3_601
        assert await cache.get_titles("us", "movie") == ()
        await cache.wait_for_refreshes()

        titles = await cache.get_titles("us", "movie")
        assert [title.id for title in titles] == ["t100", "t101"]

    asyncio.run(runner())


def test_small_pool_is_served_and_topped_up() -> None:
    async def runner() -> None:
        source = ScriptedSource([_page(0, 2, has_more=False), _page(0, 4, has_more=False)])
        cache = _cache(source, pool_size=10, min_pool_size=3)
        await cache.refresh(MOVIES)

        assert len(await cache.get_titles("us", "movie")) == 2
        await cache.wait_for_refreshes()

        assert len(cache.pool(MOVIES).titles) == 4
        assert len(source.calls) == 2

    asyncio.run(runner())


def test_random_titles_are_distinct_and_bounded() -> None:
    async def runner() -> None:
        cache = _cache(ScriptedSource([_page(0, 4, has_more=False)]), pool_size=10)
        await cache.refresh(MOVIES)

        sample = await cache.get_random_titles("us", count=10, content_type="movie")
        assert len(sample) == 4
        assert len({title.id for title in sample}) == 4
        assert await cache.get_random_titles("us", content_type="series") == []
        assert (await cache.get_random_title("us", "movie")).id.startswith("t")

    asyncio.run(runner())


def test_health_reflects_cache_contents() -> None:
    async def runner() -> None:
        cache = _cache(ScriptedSource([_page(0, 5, has_more=False)]), min_pool_size=1)
        status, details = cache.health_check()
        assert status == "unhealthy"
        assert details["reason"] == "No cached shows available"

        await cache.refresh(MOVIES)
        for _ in range(4):
            await cache.get_titles("us", "movie")
        assert cache.health_check()[0] == "healthy"

        await cache.get_titles("us", "series")
        await cache.wait_for_refreshes()
        # one miss out of five reads keeps the hit rate at 0.8
        assert cache.health_check()[0] == "healthy"
        await cache.get_titles("us", "series")
        assert cache.health_check()[0] == "degraded"
        await cache.wait_for_refreshes()

    asyncio.run(runner())


def test_stats_report_per_pool_freshness() -> None:
    async def runner() -> None:
        cache = _cache(ScriptedSource([_page(0, 2, has_more=False)]))
        await cache.refresh(MOVIES)

        stats = cache.stats()
        assert stats["totalShows"] == 2
        assert stats["poolSizes"] == {"us-movie": 2}
        assert stats["poolInfo"]["us-movie"]["isExpired"] is False
        assert stats["poolInfo"]["us-series"]["size"] == 0
        assert stats["poolInfo"]["us-series"]["isExpired"] is True

        cache.clear()
        assert cache.stats()["totalShows"] == 0
        assert cache.stats()["hitCount"] == 0

    asyncio.run(runner())
