"""
Domain: Capacity policy (quota rules attached to an offer).

Contract excerpts implemented here:
- Three ceilings, each optional: total (lifetime of the offer), per slot/day
  (bookings sharing a slot in slot mode, or a calendar day in range mode), and
  per calendar day.
- A ceiling of None or 0 is unset and means unbounded.
- remaining_quota(scope, existing) = max(0, ceiling - existing), or None when the
  ceiling is unset. It never increases as `existing` grows.
- admits() checks quantity, then total, then per slot/day, then per calendar day,
  and returns the first violated reason.
- Each ceiling is denominated either in bookings (raw quantity) or in persons
  (quantity x persons_multiplier), configured per scope.

Counts are always supplied by the caller; this module never fetches anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from .booking import BookingRequest


class Scope(str, Enum):
    TOTAL = "total"
    PER_SLOT_OR_DAY = "perSlotOrDay"
    PER_CALENDAR_DAY = "perCalendarDay"


SCOPE_ORDER = (Scope.TOTAL, Scope.PER_SLOT_OR_DAY, Scope.PER_CALENDAR_DAY)


class CeilingUnit(str, Enum):
    BOOKINGS = "bookings"
    PERSONS = "persons"


class PolicyErrorKind(str, Enum):
    INVALID_CEILING = "INVALID_CEILING"
    INCONSISTENT_CEILINGS = "INCONSISTENT_CEILINGS"


@dataclass(frozen=True, slots=True)
class PolicyError:
    """Caller-input error for a capacity setting."""

    kind: PolicyErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class RejectReason(str, Enum):
    QUANTITY_INVALID = "QuantityInvalid"
    TOTAL_EXCEEDED = "TotalExceeded"
    SLOT_EXCEEDED = "SlotExceeded"
    DAILY_EXCEEDED = "DailyExceeded"
    # Produced by the query service when the date/time is not in the calendar.
    NOT_AVAILABLE = "NotAvailable"


EXCEEDED_REASON = {
    Scope.TOTAL: RejectReason.TOTAL_EXCEEDED,
    Scope.PER_SLOT_OR_DAY: RejectReason.SLOT_EXCEEDED,
    Scope.PER_CALENDAR_DAY: RejectReason.DAILY_EXCEEDED,
}


@dataclass(frozen=True, slots=True)
class Decision:
    """Admit (reason is None) or Reject(reason)."""

    reason: Optional[RejectReason] = None

    @property
    def admitted(self) -> bool:
        return self.reason is None

    @staticmethod
    def admit() -> "Decision":
        return Decision()

    @staticmethod
    def reject(reason: RejectReason) -> "Decision":
        return Decision(reason=reason)


@dataclass(frozen=True, slots=True)
class ScopeCounts:
    """Existing usage per scope, in each scope's ceiling unit."""

    total: int = 0
    slot_or_day: int = 0
    calendar_day: int = 0

    def for_scope(self, scope: Scope) -> int:
        if scope is Scope.TOTAL:
            return self.total
        if scope is Scope.PER_SLOT_OR_DAY:
            return self.slot_or_day
        return self.calendar_day


def _default_units() -> Mapping[Scope, CeilingUnit]:
    return {scope: CeilingUnit.BOOKINGS for scope in Scope}


@dataclass(frozen=True, slots=True)
class CapacityPolicy:
    max_total_bookings: Optional[int] = None
    max_per_slot_or_day: Optional[int] = None
    max_per_calendar_day: Optional[int] = None
    persons_multiplier: int = 1
    ceiling_units: Mapping[Scope, CeilingUnit] = field(default_factory=_default_units)

    def __post_init__(self) -> None:
        for name in ("max_total_bookings", "max_per_slot_or_day", "max_per_calendar_day"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.persons_multiplier < 1:
            raise ValueError("persons_multiplier must be >= 1")

    def ceiling(self, scope: Scope) -> Optional[int]:
        """The configured ceiling for a scope, or None when unbounded."""

        if scope is Scope.TOTAL:
            value = self.max_total_bookings
        elif scope is Scope.PER_SLOT_OR_DAY:
            value = self.max_per_slot_or_day
        else:
            value = self.max_per_calendar_day
        return value or None

    def unit(self, scope: Scope) -> CeilingUnit:
        return self.ceiling_units.get(scope, CeilingUnit.BOOKINGS)

    def consumption(self, scope: Scope, quantity: int) -> int:
        """Amount one request of `quantity` consumes against a scope's ceiling."""

        if self.unit(scope) is CeilingUnit.PERSONS:
            return quantity * self.persons_multiplier
        return quantity

    def remaining_quota(self, scope: Scope, existing_count: int) -> Optional[int]:
        ceiling = self.ceiling(scope)
        if ceiling is None:
            return None
        return max(0, ceiling - existing_count)

    def admits(self, request: BookingRequest, counts: ScopeCounts) -> Decision:
        if request.quantity < 1:
            return Decision.reject(RejectReason.QUANTITY_INVALID)

        for scope in SCOPE_ORDER:
            remaining = self.remaining_quota(scope, counts.for_scope(scope))
            if remaining is not None and self.consumption(scope, request.quantity) > remaining:
                return Decision.reject(EXCEEDED_REASON[scope])
        return Decision.admit()

    def max_quantity(self, counts: ScopeCounts) -> Optional[int]:
        """
        Largest quantity admits() would accept for these counts.

        None means no ceiling applies; 0 means nothing can be booked.
        """

        best: Optional[int] = None
        for scope in SCOPE_ORDER:
            remaining = self.remaining_quota(scope, counts.for_scope(scope))
            if remaining is None:
                continue
            per_unit = self.consumption(scope, 1)
            fits = remaining // per_unit
            best = fits if best is None else min(best, fits)
        return best

    def check_consistency(self, slots_per_day: int) -> Optional[PolicyError]:
        """
        A per-slot ceiling above the daily ceiling can never be reached when a
        day holds several slots.
        """

        per_slot = self.ceiling(Scope.PER_SLOT_OR_DAY)
        per_day = self.ceiling(Scope.PER_CALENDAR_DAY)
        if (
            slots_per_day > 1
            and per_slot is not None
            and per_day is not None
            and self.unit(Scope.PER_SLOT_OR_DAY) is self.unit(Scope.PER_CALENDAR_DAY)
            and per_slot > per_day
        ):
            return PolicyError(
                PolicyErrorKind.INCONSISTENT_CEILINGS,
                "Per-slot limit cannot exceed the daily limit",
            )
        return None
