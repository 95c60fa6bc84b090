"""
Domain: DateRange value object and normalizer.

Contract excerpts implemented here:
- A DateRange is an inclusive pair of calendar days with start <= end.
- normalize(raw) returns a canonical DateRange, or a RangeError:
  - UNPARSEABLE: a bound is missing, empty, or not a date.
  - INVERTED: start is after end.
- Accepted wire representations: an existing DateRange, a mapping {start, end},
  a (start, end) pair, and the legacy nested mapping produced by older admin
  writers ({"start": {"start": ...}, "end": {"end": ...}}).

The legacy decoder is a boundary shim only. Nothing in the engine constructs the
nested form, and DateRange itself only ever holds flat `date` values.

This module contains only pure functions and value objects: no I/O.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Union

from .time import parse_iso_date

logger = logging.getLogger(__name__)


class RangeErrorKind(str, Enum):
    UNPARSEABLE = "UNPARSEABLE"
    INVERTED = "INVERTED"


@dataclass(frozen=True, slots=True)
class RangeError:
    """Caller-input error for a malformed or inverted date pair."""

    kind: RangeErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive interval of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("DateRange start must be <= end")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def covers(self, other: "DateRange") -> bool:
        """True if `other` lies fully inside this range."""

        return self.start <= other.start and other.end <= self.end

    def touches(self, other: "DateRange") -> bool:
        """True if the two day-sets intersect or are day-adjacent."""

        # Ordinals avoid overflow when an end is date.max.
        return (
            self.start.toordinal() <= other.end.toordinal() + 1
            and other.start.toordinal() <= self.end.toordinal() + 1
        )

    def merge(self, other: "DateRange") -> "DateRange":
        return DateRange(start=min(self.start, other.start), end=max(self.end, other.end))

    def days(self) -> Iterator[date]:
        for ordinal in range(self.start.toordinal(), self.end.toordinal() + 1):
            yield date.fromordinal(ordinal)

    @property
    def days_count(self) -> int:
        return (self.end - self.start).days + 1

    def to_payload(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True, slots=True)
class InvalidRangeEntry:
    """
    A stored range entry that failed normalization.

    Kept only so it can still be addressed (and removed) by position. It never
    contributes days to a calendar.
    """

    raw: Any
    error: RangeError

    def to_payload(self) -> Any:
        return self.raw


RangeEntry = Union[DateRange, InvalidRangeEntry]


def _flatten_legacy(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Flatten the legacy nested encoding {"start": {"start": s}, "end": {"end": e}}.

    Older writers sometimes wrapped only one side, so each side is unwrapped
    independently.
    """

    start = raw.get("start")
    end = raw.get("end")
    nested = False
    if isinstance(start, Mapping):
        start = start.get("start")
        nested = True
    if isinstance(end, Mapping):
        end = end.get("end")
        nested = True
    if nested:
        logger.warning("Normalizing legacy nested date range: %s", raw)
    return {"start": start, "end": end}


def normalize(raw: Any) -> Union[DateRange, RangeError]:
    """
    Canonicalize a raw date pair.

    Pure: never raises for bad input; errors are returned as RangeError values.
    """

    if isinstance(raw, DateRange):
        return raw

    if isinstance(raw, Mapping):
        flat = _flatten_legacy(raw)
        raw_start, raw_end = flat.get("start"), flat.get("end")
    elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)) and len(raw) == 2:
        raw_start, raw_end = raw[0], raw[1]
    else:
        return RangeError(RangeErrorKind.UNPARSEABLE, "Expected a start/end date pair")

    start = parse_iso_date(raw_start)
    end = parse_iso_date(raw_end)
    if start is None or end is None:
        return RangeError(RangeErrorKind.UNPARSEABLE, "Please provide valid start and end dates")
    if start > end:
        return RangeError(RangeErrorKind.INVERTED, "End date must be on or after start date")
    return DateRange(start=start, end=end)


def parse_range_list(raw: Any) -> List[RangeEntry]:
    """
    Decode a stored list of ranges (a list, or a JSON-encoded string of one).

    Entries that fail normalization are quarantined as InvalidRangeEntry rather
    than dropped, so positional edits stay aligned with what is stored.
    """

    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Stored date ranges are not valid JSON; ignoring: %r", raw)
            return []
    if not isinstance(raw, list):
        logger.warning("Stored date ranges are not a list; ignoring: %r", raw)
        return []

    entries: List[RangeEntry] = []
    for item in raw:
        result = normalize(item)
        if isinstance(result, RangeError):
            logger.warning("Quarantining unparseable stored date range %r (%s)", item, result)
            entries.append(InvalidRangeEntry(raw=item, error=result))
        else:
            entries.append(result)
    return entries


def valid_ranges(entries: Sequence[RangeEntry]) -> List[DateRange]:
    return [entry for entry in entries if isinstance(entry, DateRange)]


def bounded(start: date, end: Optional[date]) -> DateRange:
    """Build an offer's validity window; an open end means no upper limit."""

    return DateRange(start=start, end=end if end is not None else date.max)
