"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .countries import COUNTRY_CODES, SUPPORTED_COUNTRIES, CountryDefinition


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="NetPick", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    streaming_api_key: str | None = Field(
        default=None, alias="STREAMING_AVAILABILITY_API_KEY"
    )
    streaming_api_url: HttpUrl = Field(
        default="https://streaming-availability.p.rapidapi.com",
        alias="STREAMING_AVAILABILITY_BASE_URL",
    )
    streaming_api_host: str = Field(
        default="streaming-availability.p.rapidapi.com",
        alias="STREAMING_AVAILABILITY_HOST",
    )

    supported_countries: Annotated[tuple[str, ...], NoDecode] = Field(
        default=COUNTRY_CODES, alias="SUPPORTED_COUNTRIES"
    )

    pool_size: int = Field(default=200, alias="CACHE_POOL_SIZE", ge=1, le=5_000)
    min_pool_size: int = Field(default=50, alias="CACHE_MIN_POOL_SIZE", ge=0)
    cache_ttl_hours: float = Field(default=6, alias="CACHE_TTL_HOURS", gt=0)
    refresh_interval_seconds: int = Field(
        default=21_600, alias="CACHE_REFRESH_INTERVAL", ge=60
    )
    refresh_stagger_seconds: float = Field(
        default=10.0, alias="CACHE_REFRESH_STAGGER", ge=0
    )
    max_refresh_pages: int = Field(
        default=10, alias="CACHE_MAX_REFRESH_PAGES", ge=1, le=100
    )

    max_recent_picks: int = Field(default=10, alias="PICKER_MAX_RECENT", ge=1, le=100)
    max_tracked_users: int = Field(
        default=100, alias="PICKER_MAX_USERS", ge=1, le=1_000_000
    )
    min_selection_weight: float = Field(
        default=30.0, alias="PICKER_MIN_WEIGHT", gt=0, le=100
    )

    rate_limit_per_user: int = Field(default=100, alias="RATE_LIMIT_PER_USER", ge=1)
    rate_limit_window_ms: int = Field(
        default=60_000, alias="RATE_LIMIT_WINDOW_MS", ge=1_000
    )

    enable_scheduler: bool = Field(default=True, alias="ENABLE_SCHEDULER")

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("supported_countries", mode="before")
    @classmethod
    def _parse_supported_countries(cls, value: object) -> tuple[str, ...]:
        """Normalise country selections from environment values."""

        if value is None:
            return COUNTRY_CODES
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError("SUPPORTED_COUNTRIES must be a string or iterable of strings")

        cleaned: list[str] = []
        for entry in raw_values:
            code = entry.lower()
            if not code:
                continue
            if code not in COUNTRY_CODES:
                raise ValueError(f"Unsupported country configured: {code}")
            if code not in cleaned:
                cleaned.append(code)
        if not cleaned:
            return COUNTRY_CODES
        return tuple(cleaned)

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "Settings":
        if self.min_pool_size > self.pool_size:
            raise ValueError("CACHE_MIN_POOL_SIZE must not exceed CACHE_POOL_SIZE")
        return self

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_hours * 3_600

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1_000

    @property
    def country_definitions(self) -> tuple[CountryDefinition, ...]:
        """Return ordered definitions for the configured countries."""

        definition_map = {country.code: country for country in SUPPORTED_COUNTRIES}
        return tuple(definition_map[code] for code in self.supported_countries)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
