"""Client for the Streaming Availability catalog API."""

from __future__ import annotations

import logging
import math
from typing import Any, Literal

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import ContentType, Genre, ImageSet, SearchPage, Title

logger = logging.getLogger(__name__)

SEARCH_PATH = "/shows/search/filters"
STREAMING_SERVICE_ID = "netflix"

OrderBy = Literal["original_title", "popularity_1year", "rating", "release_date"]
OrderDirection = Literal["asc", "desc"]


class UpstreamError(Exception):
    """Raised when the catalog API cannot serve a page."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class StreamingAvailabilityClient:
    """Thin wrapper around the paginated ``/shows/search/filters`` endpoint."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.streaming_api_key:
            raise ValueError("STREAMING_AVAILABILITY_API_KEY is required")
        self._settings = settings
        self._client = http_client

    def _headers(self) -> dict[str, str]:
        return {
            "X-RapidAPI-Key": self._settings.streaming_api_key or "",
            "X-RapidAPI-Host": self._settings.streaming_api_host,
            "Content-Type": "application/json",
        }

    async def search_shows(
        self,
        country: str,
        *,
        content_type: ContentType | None = None,
        catalogs: str = STREAMING_SERVICE_ID,
        order_by: OrderBy | None = None,
        order_direction: OrderDirection | None = None,
        cursor: str | None = None,
    ) -> SearchPage:
        """Fetch one page of titles and normalize every record."""

        params: dict[str, str] = {"country": country, "catalogs": catalogs}
        if content_type:
            params["show_type"] = content_type
        if order_by:
            params["order_by"] = order_by
        if order_direction:
            params["order_direction"] = order_direction
        if cursor:
            params["cursor"] = cursor
        params["series_granularity"] = "show"
        params["output_language"] = "en"

        logger.debug("Fetching %s with %s", SEARCH_PATH, params)
        try:
            response = await self._client.get(
                SEARCH_PATH, params=params, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(
                "Failed to fetch Netflix shows", details=str(exc)
            ) from exc

        if response.status_code >= 400:
            raise UpstreamError(
                f"Streaming Availability API error: {response.status_code}",
                status_code=response.status_code,
                details=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "Streaming Availability API returned invalid JSON",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise UpstreamError(
                "Streaming Availability API returned an unexpected payload",
                status_code=response.status_code,
            )

        titles: list[Title] = []
        for raw in data.get("shows") or []:
            if not isinstance(raw, dict):
                continue
            try:
                title = self.normalize_show(raw, country)
            except (TypeError, ValueError, ValidationError) as exc:
                logger.debug("Skipping malformed catalog record %r: %s", raw.get("id"), exc)
                continue
            if title is not None:
                titles.append(title)

        next_cursor = data.get("nextCursor")
        return SearchPage(
            titles=titles,
            has_more=bool(data.get("hasMore")),
            next_cursor=str(next_cursor) if next_cursor else None,
        )

    async def get_popular_titles(
        self, country: str, content_type: ContentType | None = None
    ) -> list[Title]:
        """Return the first page of the most popular titles for ``country``."""

        page = await self.search_shows(
            country,
            content_type=content_type,
            order_by="popularity_1year",
            order_direction="desc",
        )
        return page.titles

    async def health_check(self) -> tuple[str, str]:
        """Issue a minimal request and report ``("ok"|"error", message)``."""

        try:
            await self.search_shows("us", content_type="movie")
        except UpstreamError as exc:
            return "error", str(exc)
        return "ok", "Streaming Availability API is healthy"

    @classmethod
    def normalize_show(cls, raw: dict[str, Any], country: str) -> Title | None:
        """Convert a raw API record into a :class:`Title`.

        Records without an identifier, a title or a recognised show type are
        dropped. Missing artwork falls back to the local placeholders.
        """

        show_id = raw.get("id")
        name = raw.get("title")
        show_type = raw.get("showType")
        if not show_id or not name or show_type not in ("movie", "series"):
            logger.debug("Skipping incomplete catalog record %r", show_id)
            return None

        raw_images = raw.get("imageSet")
        image_set = ImageSet.placeholder()
        if isinstance(raw_images, dict) and raw_images:
            try:
                image_set = ImageSet.model_validate(raw_images)
            except ValidationError:
                logger.debug("Ignoring malformed image set for %s", show_id)

        streaming_options = raw.get("streamingOptions")
        if not isinstance(streaming_options, dict):
            streaming_options = {}

        return Title(
            id=str(show_id),
            tmdb_id=cls._optional_str(raw.get("tmdbId")),
            imdb_id=cls._optional_str(raw.get("imdbId")),
            title=str(name),
            original_title=str(raw.get("originalTitle") or name),
            overview=str(raw.get("overview") or ""),
            show_type=show_type,
            release_year=cls._optional_int(raw.get("releaseYear")),
            first_air_year=cls._optional_int(raw.get("firstAirYear")),
            last_air_year=cls._optional_int(raw.get("lastAirYear")),
            rating=cls._clamp_rating(raw.get("rating")),
            genres=tuple(
                Genre(id=str(genre.get("id") or ""), name=str(genre.get("name") or ""))
                for genre in raw.get("genres") or []
                if isinstance(genre, dict)
            ),
            runtime=cls._optional_int(raw.get("runtime")),
            season_count=cls._optional_int(raw.get("seasonCount")),
            episode_count=cls._optional_int(raw.get("episodeCount")),
            image_set=image_set,
            streaming_options=streaming_options,
            netflix_link=cls._find_service_link(streaming_options, country),
            directors=tuple(str(person) for person in raw.get("directors") or []),
            creators=tuple(str(person) for person in raw.get("creators") or []),
            cast=tuple(str(person) for person in raw.get("cast") or []),
        )

    @staticmethod
    def _find_service_link(
        streaming_options: dict[str, Any], country: str
    ) -> str | None:
        options = streaming_options.get(country) or []
        if not isinstance(options, list):
            return None
        for option in options:
            if not isinstance(option, dict):
                continue
            service = option.get("service") or {}
            if isinstance(service, dict) and service.get("id") == STREAMING_SERVICE_ID:
                link = option.get("link")
                return str(link) if link else None
        return None

    @staticmethod
    def _clamp_rating(value: Any) -> float:
        try:
            rating = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(rating):
            return 0.0
        return min(max(rating, 0.0), 100.0)

    @staticmethod
    def _optional_int(value: Any) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return None

    @staticmethod
    def _optional_str(value: Any) -> str | None:
        if value in (None, ""):
            return None
        return str(value)
