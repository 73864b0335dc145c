"""Pydantic models describing catalog titles and pick results."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ContentType = Literal["movie", "series"]


class Genre(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class ImageSet(BaseModel):
    """Poster artwork keyed by width (``w240``, ``w480``...)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vertical_poster: dict[str, str] = Field(
        default_factory=dict, alias="verticalPoster"
    )
    horizontal_poster: dict[str, str] = Field(
        default_factory=dict, alias="horizontalPoster"
    )
    vertical_backdrop: dict[str, str] | None = Field(
        default=None, alias="verticalBackdrop"
    )
    horizontal_backdrop: dict[str, str] | None = Field(
        default=None, alias="horizontalBackdrop"
    )

    @classmethod
    def placeholder(cls) -> "ImageSet":
        """Return the local placeholder artwork used when upstream has none."""

        return cls(
            vertical_poster={
                size: f"/placeholder-poster-{size[1:]}.jpg"
                for size in ("w240", "w360", "w480", "w600", "w720")
            },
            horizontal_poster={
                size: f"/placeholder-backdrop-{size[1:]}.jpg"
                for size in ("w360", "w480", "w720", "w1080", "w1440")
            },
        )


class Title(BaseModel):
    """A single Netflix title held in a cache pool."""

    model_config = ConfigDict(frozen=True)

    id: str
    tmdb_id: str | None = None
    imdb_id: str | None = None
    title: str
    original_title: str = ""
    overview: str = ""
    show_type: ContentType
    release_year: int | None = None
    first_air_year: int | None = None
    last_air_year: int | None = None
    rating: float = Field(default=0, ge=0, le=100)
    genres: tuple[Genre, ...] = ()
    runtime: int | None = None
    season_count: int | None = None
    episode_count: int | None = None
    image_set: ImageSet = Field(default_factory=ImageSet)
    streaming_options: dict[str, Any] = Field(default_factory=dict)
    netflix_link: str | None = None
    directors: tuple[str, ...] = ()
    creators: tuple[str, ...] = ()
    cast: tuple[str, ...] = ()

    def poster_url(self) -> str | None:
        return self.image_set.vertical_poster.get("w480") or None

    def has_required_fields(self) -> bool:
        """Return whether the title is complete enough to be shown."""

        return bool(
            self.title
            and self.overview
            and self.netflix_link
            and self.poster_url()
        )

    def passes_quality_filter(self) -> bool:
        return self.has_required_fields() and self.rating > 0

    def quality_score(self) -> int:
        """Return a rough completeness score used for diagnostics."""

        score = 0
        if self.title:
            score += 10
        if self.overview and len(self.overview) > 20:
            score += 10
        if self.netflix_link:
            score += 20
        if self.poster_url():
            score += 10

        if self.rating > 70:
            score += 20
        elif self.rating > 50:
            score += 10

        for collection in (self.genres, self.cast, self.directors, self.creators):
            if collection:
                score += 5
        return score

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body describing this title in discover responses."""

        vertical = self.image_set.vertical_poster
        horizontal = self.image_set.horizontal_poster
        return {
            "id": self.id,
            "title": self.title,
            "originalTitle": self.original_title or self.title,
            "overview": self.overview,
            "showType": self.show_type,
            "releaseYear": self.release_year,
            "firstAirYear": self.first_air_year,
            "lastAirYear": self.last_air_year,
            "rating": self.rating,
            "genres": [genre.model_dump() for genre in self.genres],
            "runtime": self.runtime,
            "seasonCount": self.season_count,
            "episodeCount": self.episode_count,
            "cast": list(self.cast[:5]),
            "directors": list(self.directors),
            "creators": list(self.creators),
            "images": {
                "poster": vertical.get("w480") or vertical.get("w360"),
                "backdrop": horizontal.get("w720") or horizontal.get("w480"),
                "posterSizes": dict(vertical),
                "backdropSizes": dict(horizontal),
            },
            "netflixLink": self.netflix_link,
            "tmdbId": self.tmdb_id,
            "imdbId": self.imdb_id,
        }


class SearchPage(BaseModel):
    """One page of normalized titles returned by the catalog search."""

    titles: list[Title] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None


class DiscoverResult(BaseModel):
    """Outcome of a single discover request."""

    title: Title
    country: str
    from_cache: bool = True
    response_time_ms: float = 0.0
    relaxed: bool = False
