"""Pydantic models describing room preferences and results."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RoomStatus = Literal["waiting", "ready"]

MAX_IDENTIFIER_LENGTH = 64
# Earliest release year the catalog indexes; the upper bound keeps years sane.
MIN_YEAR = 1874
MAX_YEAR = 2100


class YearRange(BaseModel):
    """Inclusive span of release years."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=MIN_YEAR, le=MAX_YEAR)
    end: int = Field(ge=MIN_YEAR, le=MAX_YEAR)

    @model_validator(mode="after")
    def _check_order(self) -> "YearRange":
        if self.start > self.end:
            raise ValueError("years must be ordered as [start, end] with start <= end")
        return self

    @property
    def width(self) -> int:
        return self.end - self.start

    def years_descending(self) -> range:
        """Return every year in the range, newest first."""

        return range(self.end, self.start - 1, -1)


class Preference(BaseModel):
    """A single user's validated criteria for a room."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    room_id: str = Field(min_length=1, max_length=MAX_IDENTIFIER_LENGTH)
    genres: tuple[str, ...] = Field(min_length=1)
    years: YearRange

    @field_validator("user_id", "room_id", mode="before")
    @classmethod
    def _strip_identifier(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("genres", mode="before")
    @classmethod
    def _clean_genres(cls, value: object) -> tuple[str, ...]:
        """Reject empty genre lists and blank entries, collapsing repeats."""

        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise ValueError("genres must be a list of strings")
        cleaned: list[str] = []
        for entry in value:
            if not isinstance(entry, str):
                raise ValueError("genres must contain only strings")
            genre = entry.strip()
            if not genre:
                raise ValueError("genres must not contain empty values")
            if genre not in cleaned:
                cleaned.append(genre)
        if not cleaned:
            raise ValueError("genres must not be empty")
        return tuple(cleaned)

    @field_validator("years", mode="before")
    @classmethod
    def _parse_years(cls, value: object) -> object:
        """Accept ``[start, end]`` pairs as well as ``YearRange`` mappings."""

        if isinstance(value, (YearRange, dict)):
            return value
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise ValueError("years must be a list of two integers")
        if len(value) != 2:
            raise ValueError("years must contain exactly two values")
        parsed: list[int] = []
        for entry in value:
            if isinstance(entry, bool):
                raise ValueError("years must contain integers")
            if isinstance(entry, float) and entry.is_integer():
                entry = int(entry)
            if not isinstance(entry, int):
                raise ValueError("years must contain integers")
            parsed.append(entry)
        return {"start": parsed[0], "end": parsed[1]}


class RoomResult(BaseModel):
    """Final recommendation set stored for a room."""

    room_id: str
    movies: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"room_id": self.room_id, "movies": self.movies}
