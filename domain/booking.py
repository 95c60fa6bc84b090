"""
Domain: Booking requests and admission outcomes.

A BookingRequest is the already-validated primitive input the query service
evaluates. It is not persisted by this engine; only ledger counts are.

Unit keys identify the counters a request is checked against:
- total:          "*"
- per slot/day:   "YYYY-MM-DD" (range mode) or "YYYY-MM-DDTHH:MM" (slot mode)
- per calendar day: "YYYY-MM-DD"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional

from .time import require_utc_timestamp

if TYPE_CHECKING:
    from .capacity import RejectReason, Scope

TOTAL_KEY = "*"


def day_key(day: date) -> str:
    return day.isoformat()


def slot_key(day: date, start: time) -> str:
    return f"{day.isoformat()}T{start:%H:%M}"


@dataclass(frozen=True, slots=True)
class BookingRequest:
    offer_id: str
    date: date
    quantity: int = 1
    time: Optional[time] = None

    def unit_key(self) -> str:
        if self.time is None:
            return day_key(self.date)
        return slot_key(self.date, self.time)


class BookingState(str, Enum):
    RECEIVED = "Received"
    VALIDATED = "Validated"
    CAPACITY_CHECKED = "CapacityChecked"
    ADMITTED = "Admitted"
    REJECTED = "Rejected"


@dataclass(frozen=True, slots=True)
class BookingOutcome:
    """
    Terminal result of one booking attempt.

    `reserved` lists the amount taken from each scope's counter on admission and
    is empty on rejection (rejections never touch the ledger).
    """

    request: BookingRequest
    state: BookingState
    decided_at: datetime
    reason: Optional["RejectReason"] = None
    reserved: Mapping["Scope", int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("decided_at", self.decided_at)
        if self.state not in (BookingState.ADMITTED, BookingState.REJECTED):
            raise ValueError("BookingOutcome must be Admitted or Rejected")
        if (self.state is BookingState.REJECTED) != (self.reason is not None):
            raise ValueError("A rejected outcome needs a reason; an admitted one must not have one")

    @property
    def admitted(self) -> bool:
        return self.state is BookingState.ADMITTED
