"""Entry point for the FastAPI-powered random title picker."""

from __future__ import annotations

import logging
import time
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, TypeVar

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .countries import DEFAULT_COUNTRY, DEFAULT_FLAG
from .rate_limit import RateLimiter
from .services.history import PickHistory
from .services.picker import NoContentError, RandomPicker
from .services.pool_cache import PoolCache
from .services.scheduler import RefreshScheduler
from .services.streaming_availability import StreamingAvailabilityClient
from .utils import client_ip_from_headers, coerce_int, generate_request_id, utc_isoformat

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}
SUPPORTED_TYPES = ("movie", "series", "any")
HEALTH_STATUS_CODES = {"healthy": 200, "degraded": 207, "unhealthy": 503}

ServiceT = TypeVar("ServiceT")

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.streaming_api_url),
            timeout=httpx.Timeout(20.0, connect=10.0),
        )
    )

    streaming_client = StreamingAvailabilityClient(settings, http_client)
    cache = PoolCache.from_settings(settings, streaming_client)
    history = PickHistory(
        max_recent_picks=settings.max_recent_picks,
        max_users=settings.max_tracked_users,
    )
    picker = RandomPicker(cache, history, min_weight=settings.min_selection_weight)
    scheduler = RefreshScheduler(
        cache,
        interval_seconds=settings.refresh_interval_seconds,
        stagger_seconds=settings.refresh_stagger_seconds,
    )

    fastapi_app.state.streaming_client = streaming_client
    fastapi_app.state.pool_cache = cache
    fastapi_app.state.picker = picker
    fastapi_app.state.scheduler = scheduler
    fastapi_app.state.rate_limiter = RateLimiter(
        settings.rate_limit_per_user, settings.rate_limit_window_seconds
    )

    if settings.enable_scheduler:
        scheduler.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await scheduler.stop()
        await cache.close()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="One random Netflix title per request",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _get_service(fastapi_app: FastAPI, name: str, expected: type[ServiceT]) -> ServiceT:
    service = getattr(fastapi_app.state, name, None)
    if not isinstance(service, expected):
        raise RuntimeError(f"{name} not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/discover")
    async def discover(
        request: Request,
        country: str = DEFAULT_COUNTRY,
        requested_type: str = Query("any", alias="type"),
        min_rating_param: str | None = Query(None, alias="minRating"),
        user_id_param: str | None = Query(None, alias="userId"),
    ) -> JSONResponse:
        started = time.perf_counter()
        limiter = _get_service(fastapi_app, "rate_limiter", RateLimiter)
        picker = _get_service(fastapi_app, "picker", RandomPicker)

        client_ip = client_ip_from_headers(request.headers)
        if not limiter.allow(client_ip):
            return _error_response(429, "Rate limit exceeded. Please try again later.")

        country = country.strip().lower()
        if country not in settings.supported_countries:
            return _error_response(
                400,
                "Invalid country",
                supportedCountries=list(settings.supported_countries),
            )

        content_type = requested_type.strip().lower()
        if content_type not in SUPPORTED_TYPES:
            return _error_response(
                400, "Invalid type", supportedTypes=list(SUPPORTED_TYPES)
            )

        min_rating: int | None = None
        if min_rating_param not in (None, ""):
            min_rating = coerce_int(min_rating_param)
            if min_rating is None or not 0 <= min_rating <= 100:
                return _error_response(400, "Invalid minRating. Must be between 0 and 100.")

        user_id = (user_id_param or "").strip() or client_ip
        logger.info(
            "Discover request country=%s type=%s minRating=%s from %s",
            country,
            content_type,
            min_rating,
            client_ip,
        )

        try:
            result = await picker.discover(
                country,
                None if content_type == "any" else content_type,  # type: ignore[arg-type]
                min_rating=min_rating,
                exclude_recent=True,
                user_id=user_id,
            )
        except NoContentError as exc:
            return _error_response(404, str(exc), started=started)
        except Exception:
            logger.exception("Discover request for %s failed", country)
            return _error_response(500, "Internal server error", started=started)

        total_ms = _elapsed_ms(started)
        logger.info(
            "Discover response: %s (%s) in %sms",
            result.title.title,
            result.title.show_type,
            total_ms,
        )
        payload = {
            "success": True,
            "data": {
                "show": result.title.to_payload(),
                "metadata": {
                    "country": result.country,
                    "fromCache": result.from_cache,
                    "relaxedFilters": result.relaxed,
                    "responseTime": round(result.response_time_ms),
                    "requestId": generate_request_id(),
                    "timestamp": utc_isoformat(),
                },
            },
        }
        headers = {
            **NO_CACHE_HEADERS,
            "X-Response-Time": f"{total_ms}ms",
            "X-Cache-Hit": "true" if result.from_cache else "false",
        }
        return JSONResponse(payload, headers=headers)

    @fastapi_app.get("/api/countries")
    async def countries() -> JSONResponse:
        entries = []
        for definition in settings.country_definitions:
            entries.append(
                {
                    "code": definition.code,
                    "name": definition.name,
                    "flag": definition.flag or DEFAULT_FLAG,
                    "services": list(definition.services),
                }
            )
        default_country = (
            DEFAULT_COUNTRY
            if DEFAULT_COUNTRY in settings.supported_countries
            else settings.supported_countries[0]
        )
        payload = {
            "success": True,
            "data": {
                "countries": entries,
                "defaultCountry": default_country,
                "supportedServices": ["netflix"],
                "metadata": {
                    "totalCountries": len(entries),
                    "timestamp": utc_isoformat(),
                },
            },
        }
        return JSONResponse(payload, headers={"Cache-Control": "public, max-age=3600"})

    @fastapi_app.get("/api/health")
    async def health() -> JSONResponse:
        started = time.perf_counter()
        cache = _get_service(fastapi_app, "pool_cache", PoolCache)
        picker = _get_service(fastapi_app, "picker", RandomPicker)
        streaming_client = _get_service(
            fastapi_app, "streaming_client", StreamingAvailabilityClient
        )

        cache_status, _ = cache.health_check()
        cache_stats = cache.stats()
        picker_stats = picker.stats()
        api_status, api_message = await streaming_client.health_check()

        overall = _overall_status(cache_status, api_status)
        payload: dict[str, Any] = {
            "status": overall,
            "timestamp": utc_isoformat(),
            "responseTime": _elapsed_ms(started),
            "services": {
                "cache": {
                    "status": cache_status,
                    "stats": {
                        "totalShows": cache_stats["totalShows"],
                        "hitRate": cache_stats["hitRate"],
                        "poolCount": len(cache_stats["poolSizes"]),
                        "activePools": sum(
                            1 for info in cache_stats["poolInfo"].values() if info["size"] > 0
                        ),
                    },
                    "pools": cache_stats["poolInfo"],
                },
                "picker": {
                    "status": "healthy",
                    "stats": {
                        "totalPicks": picker_stats.total_picks,
                        "averageResponseTime": round(picker_stats.average_response_time),
                        "lastPick": utc_isoformat(picker_stats.last_pick_timestamp)
                        if picker_stats.last_pick_timestamp
                        else None,
                    },
                },
                "externalAPI": {"status": api_status, "message": api_message},
            },
            "environment": {
                "environment": settings.environment,
                "supportedCountries": list(settings.supported_countries),
                "cacheConfig": {
                    "poolSize": settings.pool_size,
                    "ttlHours": settings.cache_ttl_hours,
                    "minPoolSize": settings.min_pool_size,
                },
            },
        }
        return JSONResponse(
            payload,
            status_code=HEALTH_STATUS_CODES[overall],
            headers=NO_CACHE_HEADERS,
        )


def _overall_status(cache_status: str, api_status: str) -> str:
    if cache_status == "unhealthy":
        return "unhealthy"
    if cache_status == "healthy" and api_status == "ok":
        return "healthy"
    return "degraded"


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1_000)


def _error_response(
    status_code: int, error: str, *, started: float | None = None, **extra: Any
) -> JSONResponse:
    metadata: dict[str, Any] = {"timestamp": utc_isoformat()}
    if started is not None:
        metadata["responseTime"] = _elapsed_ms(started)
    return JSONResponse(
        {"success": False, "error": error, **extra, "metadata": metadata},
        status_code=status_code,
        headers=NO_CACHE_HEADERS,
    )


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
