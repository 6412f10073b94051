"""Tests for merging room preferences into a catalog query."""

from __future__ import annotations

import itertools

import pytest

from app.aggregation import (
    CatalogQuery,
    build_catalog_query,
    enumerate_extra_years,
    merge_genres,
    merge_year_ranges,
    plan_years,
    select_widest,
)
from app.models import Preference, YearRange


def make_preference(user_id: str, genres: list[str], years: list[int]) -> Preference:
    return Preference.model_validate(
        {"user_id": user_id, "room_id": "room-1", "genres": genres, "years": years}
    )


def spans(ranges: list[YearRange]) -> list[tuple[int, int]]:
    return [(year_range.start, year_range.end) for year_range in ranges]


@pytest.mark.parametrize(
    ("ranges", "expected"),
    [
        ([(2000, 2005), (2004, 2010)], [(2000, 2010)]),
        ([(2000, 2005), (2006, 2010)], [(2000, 2010)]),
        ([(2000, 2005), (2008, 2010)], [(2000, 2005), (2008, 2010)]),
        ([(1990, 2020), (2000, 2005)], [(1990, 2020)]),
        ([(2001, 2001), (2002, 2002), (2004, 2004)], [(2001, 2002), (2004, 2004)]),
    ],
)
def test_merge_year_ranges(ranges, expected) -> None:
    merged = merge_year_ranges(YearRange(start=start, end=end) for start, end in ranges)

    assert spans(merged) == expected


def test_merge_year_ranges_is_order_independent_and_idempotent() -> None:
    ranges = [
        YearRange(start=2008, end=2010),
        YearRange(start=1995, end=1999),
        YearRange(start=2000, end=2003),
        YearRange(start=2011, end=2012),
    ]
    expected = [(1995, 2003), (2008, 2012)]

    for permutation in itertools.permutations(ranges):
        merged = merge_year_ranges(permutation)
        assert spans(merged) == expected
        assert spans(merge_year_ranges(merged)) == expected


def test_merge_year_ranges_empty() -> None:
    assert merge_year_ranges([]) == []


def test_select_widest_prefers_first_on_ties() -> None:
    ranges = [
        YearRange(start=1980, end=1985),
        YearRange(start=1990, end=1995),
        YearRange(start=2000, end=2002),
    ]

    assert select_widest(ranges) == 0


def test_select_widest_requires_ranges() -> None:
    with pytest.raises(ValueError):
        select_widest([])


def test_widest_range_is_primary_and_others_are_enumerated() -> None:
    plan = plan_years([YearRange(start=2000, end=2010), YearRange(start=1990, end=1995)])

    assert (plan.primary.start, plan.primary.end) == (2000, 2010)
    assert plan.extra_years == (1995, 1994, 1993, 1992, 1991, 1990)


def test_enumerating_long_range_is_capped() -> None:
    years = enumerate_extra_years([YearRange(start=1960, end=1979)])

    assert len(years) == 15
    assert years[0] == 1979
    assert years[-1] == 1965


def test_enumeration_cap_drops_oldest_years_across_ranges() -> None:
    years = enumerate_extra_years(
        [YearRange(start=1950, end=1959), YearRange(start=1970, end=1979)],
        limit=12,
    )

    assert years == tuple(range(1979, 1969, -1)) + (1959, 1958)


def test_enumeration_respects_zero_limit() -> None:
    assert enumerate_extra_years([YearRange(start=2000, end=2001)], limit=0) == ()


def test_enumeration_stops_at_cap_without_expanding_whole_range() -> None:
    # model_construct skips the year bounds so the range is far wider than any real one.
    huge = YearRange.model_construct(start=0, end=10**12)

    years = enumerate_extra_years([huge], limit=15)

    assert years == tuple(range(10**12, 10**12 - 15, -1))


def test_genre_union_has_no_duplicates() -> None:
    preferences = [
        make_preference("alice", ["action", "comedy"], [2000, 2005]),
        make_preference("bob", ["comedy", "drama"], [2001, 2003]),
    ]

    assert merge_genres(preferences) == ("action", "comedy", "drama")


def test_build_catalog_query_combines_preferences() -> None:
    preferences = [
        make_preference("alice", ["action"], [2000, 2010]),
        make_preference("bob", ["drama"], [1990, 1992]),
    ]

    query = build_catalog_query(
        preferences, page_size=50, content_types=("movie", "tv-series")
    )

    assert query.primary_range == YearRange(start=2000, end=2010)
    assert query.extra_years == (1992, 1991, 1990)
    assert query.genres == ("action", "drama")
    assert query.limit == 50
    assert query.content_types == ("movie", "tv-series")


def test_build_catalog_query_requires_preferences() -> None:
    with pytest.raises(ValueError):
        build_catalog_query([])


def test_catalog_query_params_use_repeated_keys() -> None:
    query = CatalogQuery(
        primary_range=YearRange(start=2000, end=2010),
        genres=("action", "comedy"),
        extra_years=(1995, 1994),
        limit=100,
    )

    params = query.to_params()

    assert ("page", "1") in params
    assert ("limit", "100") in params
    assert [value for key, value in params if key == "year"] == ["2000-2010", "1995", "1994"]
    assert [value for key, value in params if key == "genres.name"] == ["action", "comedy"]
    assert [value for key, value in params if key == "notNullFields"] == [
        "name",
        "description",
        "poster.url",
    ]
    assert ("sortField", "rating.kp") in params
    assert ("sortType", "-1") in params
    assert [value for key, value in params if key == "type"] == ["movie"]
    assert len([key for key, _ in params if key == "selectFields"]) == 8


def test_single_year_primary_range_uses_plain_year() -> None:
    query = CatalogQuery(primary_range=YearRange(start=1999, end=1999), genres=("drama",))

    assert query.year_filter == "1999"
