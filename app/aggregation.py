"""Merge room preferences into a single catalog query."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Preference, YearRange

DEFAULT_EXTRA_YEAR_LIMIT = 15

SELECT_FIELDS: tuple[str, ...] = (
    "id",
    "name",
    "year",
    "movieLength",
    "rating",
    "description",
    "genres",
    "poster",
)
NOT_NULL_FIELDS: tuple[str, ...] = ("name", "description", "poster.url")
SORT_FIELD = "rating.kp"
SORT_DESCENDING = -1


@dataclass(frozen=True)
class CatalogQuery:
    """Structured search request against the movie catalog."""

    primary_range: YearRange
    genres: tuple[str, ...]
    extra_years: tuple[int, ...] = ()
    content_types: tuple[str, ...] = ("movie",)
    page: int = 1
    limit: int = 100
    select_fields: tuple[str, ...] = SELECT_FIELDS
    not_null_fields: tuple[str, ...] = NOT_NULL_FIELDS
    sort_field: str = SORT_FIELD
    sort_type: int = SORT_DESCENDING

    @property
    def year_filter(self) -> str:
        """Return the bounded ``start-end`` filter for the primary range."""

        start, end = self.primary_range.start, self.primary_range.end
        if start == end:
            return str(start)
        return f"{start}-{end}"

    def to_params(self) -> list[tuple[str, str]]:
        """Serialise the query as repeated query-string parameters.

        Repeated ``year`` values are ORed by the catalog API, so every extra
        year widens the search alongside the primary range.
        """

        params: list[tuple[str, str]] = [
            ("page", str(self.page)),
            ("limit", str(self.limit)),
            ("year", self.year_filter),
        ]
        params.extend(("year", str(year)) for year in self.extra_years)
        params.extend(("genres.name", genre) for genre in self.genres)
        params.extend(("selectFields", name) for name in self.select_fields)
        params.extend(("notNullFields", name) for name in self.not_null_fields)
        params.append(("sortField", self.sort_field))
        params.append(("sortType", str(self.sort_type)))
        params.extend(("type", content_type) for content_type in self.content_types)
        return params


@dataclass(frozen=True)
class YearPlan:
    """Primary bounded range plus discrete years from the other ranges."""

    primary: YearRange
    extra_years: tuple[int, ...] = ()


def merge_genres(preferences: Iterable[Preference]) -> tuple[str, ...]:
    """Return the union of all genres in order of first appearance."""

    merged: dict[str, None] = {}
    for preference in preferences:
        for genre in preference.genres:
            merged.setdefault(genre, None)
    return tuple(merged)


def merge_year_ranges(ranges: Iterable[YearRange]) -> list[YearRange]:
    """Coalesce overlapping or adjacent ranges into disjoint sorted spans."""

    ordered = sorted(ranges, key=lambda year_range: (year_range.start, year_range.end))
    if not ordered:
        return []

    merged: list[YearRange] = []
    current_start, current_end = ordered[0].start, ordered[0].end
    for candidate in ordered[1:]:
        if candidate.start <= current_end + 1:
            current_end = max(current_end, candidate.end)
            continue
        merged.append(YearRange(start=current_start, end=current_end))
        current_start, current_end = candidate.start, candidate.end
    merged.append(YearRange(start=current_start, end=current_end))
    return merged


def select_widest(ranges: Sequence[YearRange]) -> int:
    """Return the index of the widest range; ties go to the earliest."""

    if not ranges:
        raise ValueError("At least one year range is required")
    best_index = 0
    for index, year_range in enumerate(ranges):
        if year_range.width > ranges[best_index].width:
            best_index = index
    return best_index


def enumerate_extra_years(
    ranges: Iterable[YearRange], *, limit: int = DEFAULT_EXTRA_YEAR_LIMIT
) -> tuple[int, ...]:
    """Expand ranges into discrete years, newest first, capped at ``limit``."""

    years: list[int] = []
    if limit <= 0:
        return ()
    for year_range in sorted(ranges, key=lambda item: item.end, reverse=True):
        remaining = limit - len(years)
        if remaining <= 0:
            break
        years.extend(itertools.islice(year_range.years_descending(), remaining))
    return tuple(years)


def plan_years(
    ranges: Iterable[YearRange], *, extra_year_limit: int = DEFAULT_EXTRA_YEAR_LIMIT
) -> YearPlan:
    """Merge the ranges and split them into a primary span and extra years."""

    merged = merge_year_ranges(ranges)
    primary_index = select_widest(merged)
    others = [year_range for index, year_range in enumerate(merged) if index != primary_index]
    return YearPlan(
        primary=merged[primary_index],
        extra_years=enumerate_extra_years(others, limit=extra_year_limit),
    )


def build_catalog_query(
    preferences: Sequence[Preference],
    *,
    page_size: int = 100,
    content_types: Sequence[str] = ("movie",),
    extra_year_limit: int = DEFAULT_EXTRA_YEAR_LIMIT,
) -> CatalogQuery:
    """Aggregate every preference in a room into one catalog query."""

    if not preferences:
        raise ValueError("Cannot build a catalog query without preferences")

    plan = plan_years(
        (preference.years for preference in preferences),
        extra_year_limit=extra_year_limit,
    )
    return CatalogQuery(
        primary_range=plan.primary,
        genres=merge_genres(preferences),
        extra_years=plan.extra_years,
        content_types=tuple(content_types),
        limit=page_size,
    )
