"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


KINOPOISK_CONTENT_TYPES: tuple[str, ...] = (
    "movie",
    "tv-series",
    "cartoon",
    "anime",
    "animated-series",
    "tv-show",
)
DEFAULT_CONTENT_TYPES: tuple[str, ...] = ("movie",)


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="RoomPicks", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./roompicks.db", alias="DATABASE_URL"
    )

    kinopoisk_api_url: HttpUrl = Field(
        default="https://api.kinopoisk.dev/v1.4", alias="KINOPOISK_API_URL"
    )
    kinopoisk_api_key: str | None = Field(default=None, alias="KINOPOISK_API_KEY")
    catalog_timeout_seconds: float = Field(
        default=20.0, alias="CATALOG_TIMEOUT", gt=0, le=120
    )

    catalog_page_size: int = Field(
        default=100, alias="CATALOG_PAGE_SIZE", ge=1, le=250
    )
    catalog_content_types: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_CONTENT_TYPES,
        alias="CATALOG_CONTENT_TYPES",
    )
    extra_year_limit: int = Field(
        default=15, alias="EXTRA_YEAR_LIMIT", ge=0, le=50
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("catalog_content_types", mode="before")
    @classmethod
    def _parse_content_types(cls, value: object) -> tuple[str, ...]:
        """Normalise the catalog content type allow-list."""

        if value is None:
            return DEFAULT_CONTENT_TYPES
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError(
                "CATALOG_CONTENT_TYPES must be a string or iterable of strings"
            )

        cleaned: list[str] = []
        for entry in raw_values:
            slug = entry.replace("_", "-").replace(" ", "-").lower()
            slug = "-".join(filter(None, slug.split("-")))
            if not slug:
                continue
            if slug not in KINOPOISK_CONTENT_TYPES:
                raise ValueError(f"Unknown catalog content type: {entry}")
            if slug not in cleaned:
                cleaned.append(slug)
        if not cleaned:
            return DEFAULT_CONTENT_TYPES
        return tuple(cleaned)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
