"""
Domain: Offer (only the fields that matter to scheduling).

Contract excerpts implemented here:
- An offer schedules in exactly one mode, slot or range, and the mode is
  derived from the calendar variant so the two can never disagree.
- active_from / active_until form the inclusive validity window; all
  availability must lie inside it. An open-ended offer (active_until is None)
  has no upper bound for editing, and the storefront caps bookings at a
  horizon counted from today.
- Calendar and policy change only through the editing session, whether the
  offer is a draft or already published.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from .calendar import AvailabilityCalendar, RangeCalendar, SlotCalendar
from .capacity import CapacityPolicy
from .date_range import DateRange, bounded

DEFAULT_BOOKING_HORIZON_DAYS = 90


class OfferMode(str, Enum):
    SLOT = "slot"
    RANGE = "range"


class OfferStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


@dataclass(frozen=True, slots=True)
class Offer:
    offer_id: str
    active_from: date
    calendar: AvailabilityCalendar
    active_until: Optional[date] = None
    capacity_policy: CapacityPolicy = field(default_factory=CapacityPolicy)
    status: OfferStatus = OfferStatus.DRAFT

    def __post_init__(self) -> None:
        if self.active_until is not None and self.active_until < self.active_from:
            raise ValueError("active_until must be on or after active_from")
        if not isinstance(self.calendar, (SlotCalendar, RangeCalendar)):
            raise TypeError(f"Unsupported calendar type: {type(self.calendar)!r}")

    @property
    def mode(self) -> OfferMode:
        if isinstance(self.calendar, SlotCalendar):
            return OfferMode.SLOT
        return OfferMode.RANGE

    @property
    def bounds(self) -> DateRange:
        """Validity window used when editing availability."""

        return bounded(self.active_from, self.active_until)

    def booking_window(
        self,
        today: date,
        horizon_days: int = DEFAULT_BOOKING_HORIZON_DAYS,
    ) -> Optional[DateRange]:
        """
        Days a customer may book as of `today`: never in the past, and for an
        open-ended offer no further than `horizon_days` ahead.

        None when the window is empty (e.g. the offer already expired).
        """

        start = max(self.active_from, today)
        end = self.active_until
        if end is None:
            end = today + timedelta(days=horizon_days)
        if start > end:
            return None
        return DateRange(start=start, end=end)
