"""
Domain: Availability calendars.

Contract excerpts implemented here:
- An offer's calendar is exactly one of:
  - SlotCalendar: recurring weekdays plus a fixed daily window sliced into slots.
  - RangeCalendar: a coalesced set of inclusive day intervals.
- Range invariants, holding after every mutation:
  - ranges are pairwise non-overlapping and non-adjacent;
  - no duplicate range is stored;
  - ranges are sorted by start.
- add_range / remove_range never partially apply: they return a new entry list
  or a CalendarError, and the input is never modified.
- Slots: consecutive slots of slot_interval_minutes starting at daily_start;
  a partial trailing slot is dropped, not truncated.

This module contains only pure domain entities and functions: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, time
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from .date_range import DateRange, InvalidRangeEntry, RangeEntry, valid_ranges
from .time import Weekday, add_minutes

DEFAULT_SLOT_INTERVAL_MINUTES = 60


class CalendarErrorKind(str, Enum):
    OUT_OF_BOUNDS = "OUT_OF_BOUNDS"
    DUPLICATE = "DUPLICATE"
    NOT_FOUND = "NOT_FOUND"
    MODE_MISMATCH = "MODE_MISMATCH"
    INVALID_WINDOW = "INVALID_WINDOW"
    EMPTY_WEEKDAYS = "EMPTY_WEEKDAYS"
    INVALID_WEEKDAY = "INVALID_WEEKDAY"


@dataclass(frozen=True, slots=True)
class CalendarError:
    """Caller-input error surfaced verbatim to the admin editor."""

    kind: CalendarErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True, slots=True)
class TimeSlot:
    start: time
    end: time

    @property
    def label(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


def add_range(
    existing: Sequence[RangeEntry],
    candidate: DateRange,
    bounds: DateRange,
) -> Union[List[RangeEntry], CalendarError]:
    """
    Insert `candidate`, coalescing it with every range it overlaps or abuts.

    Quarantined invalid entries are carried through untouched after the valid
    ranges.
    """

    if not bounds.covers(candidate):
        return CalendarError(
            CalendarErrorKind.OUT_OF_BOUNDS,
            f"Date range must lie within {bounds.start.isoformat()} .. {bounds.end.isoformat()}",
        )

    ranges = valid_ranges(existing)
    if candidate in ranges:
        return CalendarError(CalendarErrorKind.DUPLICATE, "This exact date range already exists")

    merged = candidate
    remaining = list(ranges)
    # Absorbing one range can make the merged range touch another, so repeat
    # until a full pass absorbs nothing.
    absorbed = True
    while absorbed:
        absorbed = False
        kept: List[DateRange] = []
        for current in remaining:
            if merged.touches(current):
                merged = merged.merge(current)
                absorbed = True
            else:
                kept.append(current)
        remaining = kept

    result: List[RangeEntry] = sorted([*remaining, merged], key=lambda r: r.start)
    result.extend(entry for entry in existing if isinstance(entry, InvalidRangeEntry))
    return result


def remove_range(
    existing: Sequence[RangeEntry],
    index: int,
) -> Union[List[RangeEntry], CalendarError]:
    """
    Delete the entry at `index`.

    Deletion is by position only: the entry's content is never inspected, so a
    corrupted entry is removable. Neighbors are not re-merged.
    """

    if index < 0 or index >= len(existing):
        return CalendarError(CalendarErrorKind.NOT_FOUND, f"No date range at position {index}")
    return [entry for position, entry in enumerate(existing) if position != index]


@dataclass(frozen=True, slots=True)
class RangeCalendar:
    """Date-range mode: availability is a coalesced set of inclusive day intervals."""

    entries: Tuple[RangeEntry, ...] = ()

    @property
    def ranges(self) -> List[DateRange]:
        return valid_ranges(self.entries)

    def days(self) -> List[date]:
        """Derived day-set, recomputed from the valid ranges only."""

        return [day for r in self.ranges for day in r.days()]

    def range_for(self, day: date) -> Optional[DateRange]:
        for r in self.ranges:
            if r.contains(day):
                return r
        return None

    def is_bookable(self, day: date) -> bool:
        return self.range_for(day) is not None

    def with_range(self, candidate: DateRange, bounds: DateRange) -> Union["RangeCalendar", CalendarError]:
        result = add_range(self.entries, candidate, bounds)
        if isinstance(result, CalendarError):
            return result
        return RangeCalendar(entries=tuple(result))

    def without_range(self, index: int) -> Union["RangeCalendar", CalendarError]:
        result = remove_range(self.entries, index)
        if isinstance(result, CalendarError):
            return result
        return RangeCalendar(entries=tuple(result))


@dataclass(frozen=True, slots=True)
class SlotCalendar:
    """Recurring slot mode: selected weekdays and a daily window cut into slots."""

    weekdays: FrozenSet[Weekday]
    daily_start: time
    daily_end: time
    slot_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES

    def __post_init__(self) -> None:
        if self.daily_start >= self.daily_end:
            raise ValueError("daily_start must be before daily_end")
        if self.slot_interval_minutes <= 0:
            raise ValueError("slot_interval_minutes must be positive")

    def slots(self) -> List[TimeSlot]:
        """The day's slot grid, independent of any particular date."""

        slots: List[TimeSlot] = []
        start = self.daily_start
        while True:
            end = add_minutes(start, self.slot_interval_minutes)
            if end is None or end > self.daily_end or end <= start:
                break
            slots.append(TimeSlot(start=start, end=end))
            start = end
        return slots

    def slots_for_date(self, day: date, bounds: DateRange) -> List[TimeSlot]:
        if Weekday.of(day) not in self.weekdays or not bounds.contains(day):
            return []
        return self.slots()

    def slot_at(self, day: date, start: time, bounds: DateRange) -> Optional[TimeSlot]:
        for slot in self.slots_for_date(day, bounds):
            if slot.start == start:
                return slot
        return None

    def toggled(self, day: Weekday) -> "SlotCalendar":
        weekdays = set(self.weekdays)
        weekdays.symmetric_difference_update({day})
        return replace(self, weekdays=frozenset(weekdays))


AvailabilityCalendar = Union[SlotCalendar, RangeCalendar]


@dataclass(frozen=True, slots=True)
class WeeklySchedule:
    """
    Default weekly schedule used to seed a new slot-mode calendar.

    Passed explicitly to the editing session; there is no module-level default
    state.
    """

    weekdays: FrozenSet[Weekday] = field(default_factory=lambda: frozenset(Weekday))
    daily_start: time = time(9, 0)
    daily_end: time = time(18, 0)
    slot_interval_minutes: int = DEFAULT_SLOT_INTERVAL_MINUTES

    def to_calendar(self) -> SlotCalendar:
        return SlotCalendar(
            weekdays=frozenset(self.weekdays),
            daily_start=self.daily_start,
            daily_end=self.daily_end,
            slot_interval_minutes=self.slot_interval_minutes,
        )


def weekdays_from(values: Iterable[object]) -> FrozenSet[Weekday]:
    return frozenset(Weekday.parse(value) for value in values)
