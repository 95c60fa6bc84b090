"""
Domain time utilities (pure).

Centralized parsing of the calendar primitives the engine receives:
- ISO calendar dates (YYYY-MM-DD)
- Times of day (HH:MM or HH:MM:SS)
- Weekday identifiers (English or French day names, as stored by the admin form)

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from enum import IntEnum
from typing import Any, Optional


class Weekday(IntEnum):
    """Weekday identifiers, numbered like `date.weekday()` (Monday == 0)."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @staticmethod
    def of(day: date) -> "Weekday":
        return Weekday(day.weekday())

    @staticmethod
    def parse(value: Any) -> "Weekday":
        """
        Resolve a Weekday from an int, an enum member, or a day name.

        Raises ValueError for anything else.
        """

        if isinstance(value, Weekday):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return Weekday(value)
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _WEEKDAY_NAMES:
                return _WEEKDAY_NAMES[key]
        raise ValueError(f"Unknown weekday: {value!r}")

    @property
    def label(self) -> str:
        return self.name.lower()


_WEEKDAY_NAMES = {
    "monday": Weekday.MONDAY,
    "tuesday": Weekday.TUESDAY,
    "wednesday": Weekday.WEDNESDAY,
    "thursday": Weekday.THURSDAY,
    "friday": Weekday.FRIDAY,
    "saturday": Weekday.SATURDAY,
    "sunday": Weekday.SUNDAY,
    "mon": Weekday.MONDAY,
    "tue": Weekday.TUESDAY,
    "wed": Weekday.WEDNESDAY,
    "thu": Weekday.THURSDAY,
    "fri": Weekday.FRIDAY,
    "sat": Weekday.SATURDAY,
    "sun": Weekday.SUNDAY,
    "lundi": Weekday.MONDAY,
    "mardi": Weekday.TUESDAY,
    "mercredi": Weekday.WEDNESDAY,
    "jeudi": Weekday.THURSDAY,
    "vendredi": Weekday.FRIDAY,
    "samedi": Weekday.SATURDAY,
    "dimanche": Weekday.SUNDAY,
}

WEEKEND = frozenset({Weekday.SATURDAY, Weekday.SUNDAY})


def parse_iso_date(value: Any) -> Optional[date]:
    """
    Parse a date-like value into a `date`.

    Accepts `date` objects and ISO strings. Full ISO timestamps are truncated to
    their calendar date. Returns None when the value is empty or unparseable.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_time_of_day(value: Any) -> time:
    """
    Parse a time of day ("09:00", "09:00:00" or a `time`).

    Raises ValueError if the value cannot be parsed.
    """

    if isinstance(value, time):
        return value
    if isinstance(value, str) and value.strip():
        return time.fromisoformat(value.strip())
    raise ValueError(f"Invalid time of day: {value!r}")


def add_minutes(moment: time, minutes: int) -> Optional[time]:
    """Add minutes to a time of day; None if the result crosses midnight."""

    anchor = datetime.combine(date.min, moment)
    shifted = anchor + timedelta(minutes=minutes)
    if shifted.date() != date.min:
        return None
    return shifted.time()


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces that timestamps recorded by the engine are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")
