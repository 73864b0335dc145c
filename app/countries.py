"""Countries the Netflix catalog pools are maintained for."""

from __future__ import annotations

from dataclasses import dataclass

from .models import ContentType

CONTENT_TYPES: tuple[ContentType, ...] = ("movie", "series")


@dataclass(frozen=True)
class CountryDefinition:
    """Describes a country the service can pick titles for."""

    code: str
    name: str
    flag: str
    services: tuple[str, ...] = ("netflix",)


SUPPORTED_COUNTRIES: tuple[CountryDefinition, ...] = (
    CountryDefinition(code="us", name="United States", flag="\U0001f1fa\U0001f1f8"),
    CountryDefinition(code="fr", name="France", flag="\U0001f1eb\U0001f1f7"),
    CountryDefinition(code="ca", name="Canada", flag="\U0001f1e8\U0001f1e6"),
    CountryDefinition(code="gb", name="United Kingdom", flag="\U0001f1ec\U0001f1e7"),
    CountryDefinition(code="de", name="Germany", flag="\U0001f1e9\U0001f1ea"),
)

DEFAULT_COUNTRY = "us"
DEFAULT_FLAG = "\U0001f30d"

COUNTRY_CODES: tuple[str, ...] = tuple(country.code for country in SUPPORTED_COUNTRIES)

