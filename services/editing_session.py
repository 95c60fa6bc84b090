"""
Offer editing session.

Thin orchestration for the admin editor: holds an in-memory draft Offer and
applies edits to its calendar and capacity policy. Every edit either returns the
updated draft or a typed error (RangeError, CalendarError, PolicyError) and, on
error, leaves the draft exactly as it was.

No network or persistence calls happen here except in commit(), which hands
the finished draft to the offer store.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import time
from typing import Any, List, Optional, Union

from domain.calendar import (
    CalendarError,
    CalendarErrorKind,
    RangeCalendar,
    SlotCalendar,
    WeeklySchedule,
)
from domain.capacity import CeilingUnit, PolicyError, PolicyErrorKind, Scope
from domain.date_range import RangeError, normalize
from domain.offer import Offer, OfferMode
from domain.time import Weekday, parse_time_of_day
from repositories.interfaces import OfferStore

logger = logging.getLogger(__name__)

EditError = Union[RangeError, CalendarError, PolicyError]

_CEILING_FIELDS = {
    Scope.TOTAL: "max_total_bookings",
    Scope.PER_SLOT_OR_DAY: "max_per_slot_or_day",
    Scope.PER_CALENDAR_DAY: "max_per_calendar_day",
}


def _mode_mismatch(expected: OfferMode) -> CalendarError:
    return CalendarError(
        CalendarErrorKind.MODE_MISMATCH,
        f"This edit requires a {expected.value}-mode calendar",
    )


class OfferEditingSession:
    """Single-editor draft of one offer's calendar and capacity policy."""

    def __init__(self, offer: Offer, default_schedule: Optional[WeeklySchedule] = None) -> None:
        self._draft = offer
        self._default_schedule = default_schedule or WeeklySchedule()

    @property
    def draft(self) -> Offer:
        return self._draft

    def _apply(self, updated: Offer) -> Offer:
        self._draft = updated
        return updated

    # ------------------------------------------------------------------
    # Calendar edits
    # ------------------------------------------------------------------

    def add_range(self, raw: Any) -> Union[Offer, EditError]:
        calendar = self._draft.calendar
        if not isinstance(calendar, RangeCalendar):
            return _mode_mismatch(OfferMode.RANGE)

        candidate = normalize(raw)
        if isinstance(candidate, RangeError):
            return candidate

        updated = calendar.with_range(candidate, self._draft.bounds)
        if isinstance(updated, CalendarError):
            return updated
        return self._apply(replace(self._draft, calendar=updated))

    def remove_range(self, index: int) -> Union[Offer, CalendarError]:
        calendar = self._draft.calendar
        if not isinstance(calendar, RangeCalendar):
            return _mode_mismatch(OfferMode.RANGE)

        updated = calendar.without_range(index)
        if isinstance(updated, CalendarError):
            return updated
        # Bookings already made inside the removed range are left to the ledger.
        return self._apply(replace(self._draft, calendar=updated))

    def toggle_weekday(self, day: Any) -> Union[Offer, CalendarError]:
        calendar = self._draft.calendar
        if not isinstance(calendar, SlotCalendar):
            return _mode_mismatch(OfferMode.SLOT)
        try:
            weekday = Weekday.parse(day)
        except ValueError as e:
            return CalendarError(CalendarErrorKind.INVALID_WEEKDAY, str(e))
        return self._apply(replace(self._draft, calendar=calendar.toggled(weekday)))

    def set_daily_window(
        self,
        start: Any,
        end: Any,
        slot_interval_minutes: Optional[int] = None,
    ) -> Union[Offer, EditError]:
        calendar = self._draft.calendar
        if not isinstance(calendar, SlotCalendar):
            return _mode_mismatch(OfferMode.SLOT)

        interval = calendar.slot_interval_minutes
        if slot_interval_minutes is not None:
            interval = slot_interval_minutes
        try:
            daily_start: time = parse_time_of_day(start)
            daily_end: time = parse_time_of_day(end)
            updated = replace(
                calendar,
                daily_start=daily_start,
                daily_end=daily_end,
                slot_interval_minutes=interval,
            )
        except ValueError as e:
            return CalendarError(CalendarErrorKind.INVALID_WINDOW, str(e))

        error = self._draft.capacity_policy.check_consistency(len(updated.slots()))
        if error is not None:
            return error
        return self._apply(replace(self._draft, calendar=updated))

    def switch_mode(self, mode: OfferMode) -> Offer:
        """
        Change scheduling style. The old calendar is discarded: a new slot
        calendar is seeded from the default weekly schedule, a new range
        calendar starts empty.
        """

        if self._draft.mode is mode:
            return self._draft
        if mode is OfferMode.SLOT:
            calendar: Union[SlotCalendar, RangeCalendar] = self._default_schedule.to_calendar()
        else:
            calendar = RangeCalendar()
        return self._apply(replace(self._draft, calendar=calendar))

    # ------------------------------------------------------------------
    # Capacity edits
    # ------------------------------------------------------------------

    def set_ceiling(self, scope: Scope, value: Optional[int]) -> Union[Offer, PolicyError]:
        if value is not None and value < 0:
            return PolicyError(PolicyErrorKind.INVALID_CEILING, "Limits cannot be negative")

        policy = replace(self._draft.capacity_policy, **{_CEILING_FIELDS[scope]: value or None})
        error = policy.check_consistency(self._slots_per_day())
        if error is not None:
            return error
        return self._apply(replace(self._draft, capacity_policy=policy))

    def set_persons_multiplier(self, persons: int) -> Union[Offer, PolicyError]:
        if persons < 1:
            return PolicyError(PolicyErrorKind.INVALID_CEILING, "Persons per booking must be at least 1")
        policy = replace(self._draft.capacity_policy, persons_multiplier=persons)
        return self._apply(replace(self._draft, capacity_policy=policy))

    def set_ceiling_unit(self, scope: Scope, unit: CeilingUnit) -> Union[Offer, PolicyError]:
        units = dict(self._draft.capacity_policy.ceiling_units)
        units[scope] = unit
        policy = replace(self._draft.capacity_policy, ceiling_units=units)
        error = policy.check_consistency(self._slots_per_day())
        if error is not None:
            return error
        return self._apply(replace(self._draft, capacity_policy=policy))

    # ------------------------------------------------------------------
    # Validation / commit
    # ------------------------------------------------------------------

    def _slots_per_day(self) -> int:
        calendar = self._draft.calendar
        if isinstance(calendar, SlotCalendar):
            return len(calendar.slots())
        return 1

    def validate(self) -> List[EditError]:
        errors: List[EditError] = []
        calendar = self._draft.calendar
        if isinstance(calendar, SlotCalendar):
            if not calendar.weekdays:
                errors.append(
                    CalendarError(CalendarErrorKind.EMPTY_WEEKDAYS, "Select at least one weekday")
                )
            if not calendar.slots():
                errors.append(
                    CalendarError(
                        CalendarErrorKind.INVALID_WINDOW,
                        "The daily window is shorter than one slot",
                    )
                )
        policy_error = self._draft.capacity_policy.check_consistency(self._slots_per_day())
        if policy_error is not None:
            errors.append(policy_error)
        return errors

    def commit(self, store: OfferStore) -> Union[Offer, EditError]:
        """
        Persist the draft.

        Returns the first validation error instead of saving an invalid draft.
        Store faults (OfferStoreError) propagate.
        """

        errors = self.validate()
        if errors:
            return errors[0]
        store.save_offer(self._draft)
        logger.info("Committed offer %s (%s mode)", self._draft.offer_id, self._draft.mode.value)
        return self._draft


__all__ = [
    "EditError",
    "OfferEditingSession",
]
