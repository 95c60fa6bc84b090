"""
Tests for `domain/date_range.py`.

Covers contract rules:
- normalize() accepts mappings, pairs, and existing DateRange values.
- Missing/empty/unparseable bounds -> UNPARSEABLE; start after end -> INVERTED.
- The legacy nested encoding is flattened at the boundary only.
- Stored lists (JSON string or list) quarantine bad entries instead of dropping them.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import date

import pytest

from domain.date_range import (
    DateRange,
    InvalidRangeEntry,
    RangeError,
    RangeErrorKind,
    bounded,
    normalize,
    parse_range_list,
    valid_ranges,
)


def test_normalize_accepts_flat_mapping() -> None:
    result = normalize({"start": "2025-04-10", "end": "2025-04-12"})

    assert result == DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))


def test_normalize_accepts_pair_and_truncates_timestamps() -> None:
    result = normalize(("2025-04-10T00:00:00Z", "2025-04-12T23:59:59Z"))

    assert result == DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))


def test_normalize_returns_existing_range_unchanged() -> None:
    existing = DateRange(start=date(2025, 4, 1), end=date(2025, 4, 1))

    assert normalize(existing) is existing


@pytest.mark.parametrize(
    "raw",
    [
        {"start": "2025-04-10"},
        {"start": "", "end": "2025-04-12"},
        {"start": "not-a-date", "end": "2025-04-12"},
        "2025-04-10",
        None,
        ["2025-04-10"],
    ],
)
def test_normalize_rejects_unparseable_input(raw: object) -> None:
    result = normalize(raw)

    assert isinstance(result, RangeError)
    assert result.kind is RangeErrorKind.UNPARSEABLE


def test_normalize_rejects_inverted_range() -> None:
    result = normalize({"start": "2025-04-12", "end": "2025-04-10"})

    assert isinstance(result, RangeError)
    assert result.kind is RangeErrorKind.INVERTED


def test_single_day_range_is_valid() -> None:
    result = normalize({"start": "2025-04-10", "end": "2025-04-10"})

    assert isinstance(result, DateRange)
    assert result.days_count == 1


def test_normalize_flattens_legacy_nested_encoding() -> None:
    raw = {"start": {"start": "2025-04-10"}, "end": {"end": "2025-04-12"}}

    assert normalize(raw) == DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))


def test_normalize_flattens_one_sided_legacy_encoding() -> None:
    raw = {"start": {"start": "2025-04-10"}, "end": "2025-04-12"}

    assert normalize(raw) == DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))


def test_date_range_rejects_inverted_construction() -> None:
    with pytest.raises(ValueError):
        DateRange(start=date(2025, 4, 2), end=date(2025, 4, 1))


def test_date_range_is_immutable() -> None:
    r = DateRange(start=date(2025, 4, 1), end=date(2025, 4, 2))

    with pytest.raises(FrozenInstanceError):
        r.start = date(2025, 3, 1)  # type: ignore[misc]


def test_touches_detects_overlap_and_adjacency() -> None:
    base = DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))

    assert base.touches(DateRange(start=date(2025, 4, 12), end=date(2025, 4, 14)))
    assert base.touches(DateRange(start=date(2025, 4, 13), end=date(2025, 4, 14)))
    assert base.touches(DateRange(start=date(2025, 4, 1), end=date(2025, 4, 9)))
    assert not base.touches(DateRange(start=date(2025, 4, 14), end=date(2025, 4, 16)))


def test_open_ended_bounds_do_not_overflow() -> None:
    window = bounded(date(2025, 4, 1), None)

    assert window.end == date.max
    assert window.touches(DateRange(start=date(2030, 1, 1), end=date(2030, 1, 2)))


def test_parse_range_list_accepts_json_string() -> None:
    entries = parse_range_list('[{"start": "2025-04-10", "end": "2025-04-12"}]')

    assert entries == [DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))]


def test_parse_range_list_quarantines_bad_entries_in_place() -> None:
    entries = parse_range_list(
        [
            {"start": "2025-04-10", "end": "2025-04-12"},
            {"start": "garbage", "end": None},
            {"start": {"start": "2025-04-20"}, "end": {"end": "2025-04-22"}},
        ]
    )

    assert len(entries) == 3
    assert isinstance(entries[1], InvalidRangeEntry)
    assert entries[1].to_payload() == {"start": "garbage", "end": None}
    assert valid_ranges(entries) == [
        DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12)),
        DateRange(start=date(2025, 4, 20), end=date(2025, 4, 22)),
    ]


@pytest.mark.parametrize("raw", [None, "", "not json", '{"start": "2025-04-10"}'])
def test_parse_range_list_ignores_unusable_payloads(raw: object) -> None:
    assert parse_range_list(raw) == []
