"""
Availability query service.

Answers, at booking time:
- which slots (slot mode) or days (range mode) can be booked on a date, and how
  much quota each has left;
- whether a booking request is admissible, reserving its capacity if so.

Each booking attempt runs the state machine
    Received -> Validated -> CapacityChecked -> Admitted | Rejected

Key Features:
- Check-then-reserve is serialized per (offer, unit) with an in-process lock
- Every counter increment is conditional at the ledger (never past a ceiling),
  so separate processes sharing a ledger cannot over-admit either
- Scopes are reserved total -> slot/day -> calendar day; if a later scope is
  refused, earlier ones are released, leaving no partial admission
- Rejections never touch the ledger
- Ledger faults propagate as LedgerUnavailableError (retryable), never as a
  rejection
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from threading import Lock
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Tuple

from domain.booking import (
    TOTAL_KEY,
    BookingOutcome,
    BookingRequest,
    BookingState,
    day_key,
)
from domain.calendar import SlotCalendar
from domain.capacity import (
    EXCEEDED_REASON,
    SCOPE_ORDER,
    CapacityPolicy,
    RejectReason,
    Scope,
    ScopeCounts,
)
from domain.date_range import DateRange
from domain.offer import DEFAULT_BOOKING_HORIZON_DAYS, Offer
from domain.time import WEEKEND, Weekday
from repositories.interfaces import BookingLedger, LedgerUnavailableError, OfferStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnitAvailability:
    """One bookable unit (a slot, or a whole day) and its remaining quantity."""

    unit_key: str
    date: date
    start: Optional[time]
    end: Optional[time]
    remaining: Optional[int]  # None = unbounded

    @property
    def available(self) -> bool:
        return self.remaining is None or self.remaining > 0


@dataclass(frozen=True, slots=True)
class PeriodAvailability:
    """A stored date range as offered on the storefront (range mode)."""

    period: DateRange
    remaining: Optional[int]
    booked: int
    percentage_full: float
    includes_weekend: bool
    available: bool

    @property
    def days_count(self) -> int:
        return self.period.days_count


class KeyedLocks:
    """
    One lock per key, created on demand.

    An entry lives only while some caller holds or waits on it, so the
    registry stays bounded by the number of in-flight keys.
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, Lock] = {}
        self._holders: Dict[Hashable, int] = {}
        self._registry_lock = Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._registry_lock:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]


def _scope_keys(request: BookingRequest) -> Dict[Scope, str]:
    return {
        Scope.TOTAL: TOTAL_KEY,
        Scope.PER_SLOT_OR_DAY: request.unit_key(),
        Scope.PER_CALENDAR_DAY: day_key(request.date),
    }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _includes_weekend(period: DateRange) -> bool:
    if period.days_count >= 7:
        return True
    return any(Weekday.of(day) in WEEKEND for day in period.days())


class AvailabilityQueryService:
    """Service for availability listing and booking admission."""

    def __init__(
        self,
        offers: OfferStore,
        ledger: BookingLedger,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utc_now,
        horizon_days: int = DEFAULT_BOOKING_HORIZON_DAYS,
    ) -> None:
        self._offers = offers
        self._ledger = ledger
        self._today = today
        self._now = now
        self._horizon_days = horizon_days
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_availability(self, offer_id: str, day: date) -> List[UnitAvailability]:
        """
        Remaining quota per bookable unit on `day`.

        Uses the same counts and ceilings as admission, so a unit listed with
        remaining > 0 admits a quantity of 1.

        Raises:
            OfferNotFoundError: If the offer does not exist.
            LedgerUnavailableError: If counts cannot be read.
        """

        offer = self._offers.load_offer(offer_id)
        units: List[UnitAvailability] = []
        for start, end in self._bookable_units(offer, day):
            request = BookingRequest(offer_id=offer_id, date=day, time=start)
            counts = self._read_counts(offer.capacity_policy, request)
            units.append(
                UnitAvailability(
                    unit_key=request.unit_key(),
                    date=day,
                    start=start,
                    end=end,
                    remaining=offer.capacity_policy.max_quantity(counts),
                )
            )
        return units

    def list_periods(self, offer_id: str) -> List[PeriodAvailability]:
        """
        Storefront view of a range-mode offer: one entry per stored range.

        A period is booked on its first day still open for booking (its start,
        or today for a period already under way), so its quota is read there.
        Periods that ended before today are listed as unavailable. Slot mode
        offers have no periods.
        """

        offer = self._offers.load_offer(offer_id)
        if isinstance(offer.calendar, SlotCalendar):
            return []

        policy = offer.capacity_policy
        window = offer.booking_window(self._today(), self._horizon_days)
        periods: List[PeriodAvailability] = []
        for period in offer.calendar.ranges:
            # A period already under way stays on offer until its last day;
            # it is then booked from the first day still in the window.
            first_day = period.start
            bookable = False
            if window is not None:
                first_day = max(period.start, window.start)
                bookable = first_day <= min(period.end, window.end)
            if not bookable:
                first_day = period.start

            request = BookingRequest(offer_id=offer_id, date=first_day)
            counts = self._read_counts(policy, request)
            remaining = policy.max_quantity(counts)
            ceiling = policy.ceiling(Scope.PER_SLOT_OR_DAY)
            booked = counts.slot_or_day
            percentage = round(min(100.0, booked * 100.0 / ceiling), 1) if ceiling else 0.0
            periods.append(
                PeriodAvailability(
                    period=period,
                    remaining=remaining,
                    booked=booked,
                    percentage_full=percentage,
                    includes_weekend=_includes_weekend(period),
                    available=bookable and (remaining is None or remaining > 0),
                )
            )
        return periods

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def book(self, request: BookingRequest) -> BookingOutcome:
        """
        Run one booking attempt to completion.

        Raises:
            OfferNotFoundError: If the offer does not exist.
            LedgerUnavailableError: If the ledger cannot be reached. Every scope
                already reserved for this attempt is released first.
        """

        self._trace(request, BookingState.RECEIVED)
        offer = self._offers.load_offer(request.offer_id)

        if not self._is_bookable(offer, request):
            logger.info(
                "Rejected booking for offer %s at %s: not available",
                request.offer_id,
                request.unit_key(),
            )
            return self._rejected(request, RejectReason.NOT_AVAILABLE)
        self._trace(request, BookingState.VALIDATED)

        policy = offer.capacity_policy
        with self._locks.hold((request.offer_id, request.unit_key())):
            counts = self._read_counts(policy, request)
            decision = policy.admits(request, counts)
            self._trace(request, BookingState.CAPACITY_CHECKED)

            if not decision.admitted:
                logger.info(
                    "Rejected booking for offer %s at %s: %s",
                    request.offer_id,
                    request.unit_key(),
                    decision.reason.value,
                )
                return self._rejected(request, decision.reason)

            refused, reserved = self._reserve(policy, request)

        if refused is not None:
            logger.info(
                "Rejected booking for offer %s at %s on reserve: %s",
                request.offer_id,
                request.unit_key(),
                EXCEEDED_REASON[refused].value,
            )
            return self._rejected(request, EXCEEDED_REASON[refused])

        logger.info(
            "Admitted booking for offer %s at %s (quantity=%d)",
            request.offer_id,
            request.unit_key(),
            request.quantity,
        )
        return BookingOutcome(
            request=request,
            state=BookingState.ADMITTED,
            decided_at=self._now(),
            reserved=reserved,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _bookable_units(self, offer: Offer, day: date) -> List[Tuple[Optional[time], Optional[time]]]:
        window = offer.booking_window(self._today(), self._horizon_days)
        if window is None:
            return []

        calendar = offer.calendar
        if isinstance(calendar, SlotCalendar):
            return [(slot.start, slot.end) for slot in calendar.slots_for_date(day, window)]
        if window.contains(day) and calendar.is_bookable(day):
            return [(None, None)]
        return []

    def _is_bookable(self, offer: Offer, request: BookingRequest) -> bool:
        if request.offer_id != offer.offer_id:
            return False
        units = self._bookable_units(offer, request.date)
        if isinstance(offer.calendar, SlotCalendar):
            if request.time is None:
                return False
            return any(start == request.time for start, _ in units)
        return request.time is None and bool(units)

    def _read_counts(self, policy: CapacityPolicy, request: BookingRequest) -> ScopeCounts:
        keys = _scope_keys(request)
        values: Dict[Scope, int] = {}
        for scope in SCOPE_ORDER:
            # Unbounded scopes never constrain; skip the round-trip.
            if policy.ceiling(scope) is None:
                values[scope] = 0
            else:
                values[scope] = self._ledger.count_bookings(request.offer_id, scope, keys[scope])
        return ScopeCounts(
            total=values[Scope.TOTAL],
            slot_or_day=values[Scope.PER_SLOT_OR_DAY],
            calendar_day=values[Scope.PER_CALENDAR_DAY],
        )

    def _reserve(
        self,
        policy: CapacityPolicy,
        request: BookingRequest,
    ) -> Tuple[Optional[Scope], Dict[Scope, int]]:
        """
        Reserve every scope in order.

        Returns (refused_scope, reserved). On refusal or ledger fault, whatever
        was already reserved is released.
        """

        keys = _scope_keys(request)
        reserved: Dict[Scope, int] = {}
        refused: Optional[Scope] = None
        try:
            for scope in SCOPE_ORDER:
                amount = policy.consumption(scope, request.quantity)
                ok = self._ledger.try_reserve(
                    request.offer_id, scope, keys[scope], amount, policy.ceiling(scope)
                )
                if not ok:
                    refused = scope
                    break
                reserved[scope] = amount
        except LedgerUnavailableError:
            self._release(request.offer_id, keys, reserved)
            raise

        if refused is not None:
            self._release(request.offer_id, keys, reserved)
            return refused, {}
        return None, reserved

    def _release(self, offer_id: str, keys: Dict[Scope, str], reserved: Dict[Scope, int]) -> None:
        """
        Give back every reserved amount.

        Each scope is attempted even if an earlier release fails; the first
        failure is raised once all of them have been tried.
        """

        failure: Optional[LedgerUnavailableError] = None
        for scope, amount in reserved.items():
            logger.warning("Releasing partial reservation %s/%s for offer %s", scope.value, keys[scope], offer_id)
            try:
                self._ledger.release(offer_id, scope, keys[scope], amount)
            except LedgerUnavailableError as e:
                logger.exception(
                    "Could not release %d on %s/%s for offer %s",
                    amount,
                    scope.value,
                    keys[scope],
                    offer_id,
                )
                if failure is None:
                    failure = e
        if failure is not None:
            raise failure

    def _trace(self, request: BookingRequest, state: BookingState) -> None:
        logger.debug("Booking for offer %s at %s: %s", request.offer_id, request.unit_key(), state.value)

    def _rejected(self, request: BookingRequest, reason: RejectReason) -> BookingOutcome:
        return BookingOutcome(
            request=request,
            state=BookingState.REJECTED,
            decided_at=self._now(),
            reason=reason,
        )


__all__ = [
    "AvailabilityQueryService",
    "KeyedLocks",
    "PeriodAvailability",
    "UnitAvailability",
]
