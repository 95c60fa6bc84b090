"""
Tests for `repositories/offer_repository.py` and `repositories/ledger_repository.py`.

Covers contract rules:
- Stored rows decode into domain Offers; ranges go through the normalizer, so JSON
  strings and legacy nested ranges are accepted and corrupted entries quarantined.
- A stored 0 ceiling means unbounded and is written back as 0.
- Supabase errors surface as OfferStoreError / LedgerUnavailableError, a missing
  row as OfferNotFoundError.
"""

from __future__ import annotations

import json
from datetime import date, time
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from postgrest.exceptions import APIError

from domain.calendar import RangeCalendar, SlotCalendar
from domain.capacity import CapacityPolicy, CeilingUnit, Scope
from domain.date_range import DateRange, InvalidRangeEntry
from domain.offer import Offer, OfferMode, OfferStatus
from domain.time import Weekday
from repositories.interfaces import LedgerUnavailableError, OfferNotFoundError, OfferStoreError
from repositories.ledger_repository import SupabaseBookingLedger
from repositories.offer_repository import SupabaseOfferStore, offer_to_row, row_to_offer


class _FakeQuery:
    def __init__(self, client: "_FakeClient", table: str) -> None:
        self._client = client
        self._table = table
        self._filters: Dict[str, Any] = {}
        self._payload: Optional[Dict[str, Any]] = None

    def select(self, *_args: Any, **_kwargs: Any) -> "_FakeQuery":
        return self

    def eq(self, column: str, value: Any) -> "_FakeQuery":
        self._filters[column] = value
        return self

    def limit(self, _count: int) -> "_FakeQuery":
        return self

    def upsert(self, payload: Dict[str, Any]) -> "_FakeQuery":
        self._payload = payload
        return self

    def execute(self) -> SimpleNamespace:
        if self._client.error is not None:
            return SimpleNamespace(data=None, error=self._client.error)
        rows = self._client.tables.setdefault(self._table, [])
        if self._payload is not None:
            rows[:] = [r for r in rows if r["offer_id"] != self._payload["offer_id"]]
            rows.append(self._payload)
            return SimpleNamespace(data=[self._payload], error=None)
        matches = [r for r in rows if all(r.get(k) == v for k, v in self._filters.items())]
        return SimpleNamespace(data=matches, error=None)


class _FakeRpc:
    def __init__(self, outcome: Any) -> None:
        self._outcome = outcome

    def execute(self) -> SimpleNamespace:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return SimpleNamespace(data=self._outcome, error=None)


class _FakeClient:
    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.tables = tables or {}
        self.error: Optional[str] = None
        self.rpc_calls: List[tuple] = []
        self.rpc_outcome: Any = {"success": True, "amount": 1}

    def table(self, name: str) -> _FakeQuery:
        return _FakeQuery(self, name)

    def rpc(self, function: str, params: Dict[str, Any]) -> _FakeRpc:
        self.rpc_calls.append((function, params))
        return _FakeRpc(self.rpc_outcome)


def _range_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "offer_id": "blane-1",
        "status": "published",
        "mode": "range",
        "active_from": "2025-04-01",
        "active_until": "2025-04-30",
        "max_total_bookings": 0,
        "max_per_slot_or_day": 3,
        "max_per_calendar_day": 0,
        "persons_multiplier": 1,
        "ceiling_units": {},
        "weekdays": [],
        "daily_start": None,
        "daily_end": None,
        "slot_interval_minutes": None,
        "date_ranges": [{"start": "2025-04-10", "end": "2025-04-12"}],
    }
    row.update(overrides)
    return row


# ---------------------------------------------------------------------------
# Row codec
# ---------------------------------------------------------------------------


def test_range_row_decodes_to_offer() -> None:
    offer = row_to_offer(_range_row())

    assert offer.mode is OfferMode.RANGE
    assert offer.status is OfferStatus.PUBLISHED
    assert offer.calendar.ranges == [DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))]
    assert offer.capacity_policy.ceiling(Scope.TOTAL) is None
    assert offer.capacity_policy.ceiling(Scope.PER_SLOT_OR_DAY) == 3


def test_legacy_json_string_ranges_are_normalized() -> None:
    legacy = json.dumps(
        [
            {"start": {"start": "2025-04-10"}, "end": {"end": "2025-04-12"}},
            {"start": "oops", "end": "2025-04-20"},
        ]
    )

    offer = row_to_offer(_range_row(date_ranges=legacy))

    assert offer.calendar.ranges == [DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12))]
    assert isinstance(offer.calendar.entries[1], InvalidRangeEntry)


def test_slot_row_decodes_french_weekdays() -> None:
    offer = row_to_offer(
        _range_row(
            mode="slot",
            weekdays='["lundi", "mercredi"]',
            daily_start="09:00",
            daily_end="12:00",
            slot_interval_minutes=30,
            date_ranges=None,
        )
    )

    assert isinstance(offer.calendar, SlotCalendar)
    assert offer.calendar.weekdays == {Weekday.MONDAY, Weekday.WEDNESDAY}
    assert len(offer.calendar.slots()) == 6


def test_open_ended_row_has_no_active_until() -> None:
    offer = row_to_offer(_range_row(active_until=None))

    assert offer.active_until is None
    assert offer.bounds.end == date.max


@pytest.mark.parametrize(
    "overrides",
    [
        {"active_from": None},
        {"mode": "weekly"},
        {"mode": "slot", "weekdays": ["monday"], "daily_start": "12:00", "daily_end": "09:00"},
        {"max_total_bookings": -4},
        {"ceiling_units": {"perSlotOrDay": "tickets"}},
    ],
)
def test_malformed_rows_raise_store_error(overrides: Dict[str, Any]) -> None:
    with pytest.raises(OfferStoreError):
        row_to_offer(_range_row(**overrides))


def test_offer_to_row_writes_flat_ranges_and_zero_ceilings() -> None:
    offer = Offer(
        offer_id="blane-9",
        active_from=date(2025, 4, 1),
        active_until=None,
        calendar=RangeCalendar(entries=(DateRange(start=date(2025, 4, 10), end=date(2025, 4, 12)),)),
        capacity_policy=CapacityPolicy(
            max_per_calendar_day=4,
            persons_multiplier=2,
            ceiling_units={
                Scope.TOTAL: CeilingUnit.BOOKINGS,
                Scope.PER_SLOT_OR_DAY: CeilingUnit.BOOKINGS,
                Scope.PER_CALENDAR_DAY: CeilingUnit.PERSONS,
            },
        ),
    )

    row = offer_to_row(offer)

    assert row["mode"] == "range"
    assert row["active_until"] is None
    assert row["date_ranges"] == [{"start": "2025-04-10", "end": "2025-04-12"}]
    assert row["max_total_bookings"] == 0
    assert row["max_per_calendar_day"] == 4
    assert row["ceiling_units"]["perCalendarDay"] == "persons"
    assert row_to_offer(row) == offer


def test_slot_offer_row_round_trip() -> None:
    offer = Offer(
        offer_id="blane-8",
        active_from=date(2025, 4, 1),
        active_until=date(2025, 6, 30),
        calendar=SlotCalendar(
            weekdays=frozenset({Weekday.FRIDAY, Weekday.SATURDAY}),
            daily_start=time(18, 0),
            daily_end=time(22, 0),
            slot_interval_minutes=90,
        ),
        capacity_policy=CapacityPolicy(max_per_slot_or_day=8),
        status=OfferStatus.PUBLISHED,
    )

    row = offer_to_row(offer)

    assert row["weekdays"] == ["friday", "saturday"]
    assert row["daily_start"] == "18:00"
    assert row_to_offer(row) == offer


# ---------------------------------------------------------------------------
# Supabase offer store
# ---------------------------------------------------------------------------


def test_store_loads_and_saves_through_client() -> None:
    client = _FakeClient({"offers": [_range_row()]})
    store = SupabaseOfferStore(client=client)

    offer = store.load_offer("blane-1")
    store.save_offer(Offer(offer_id="blane-1", active_from=offer.active_from, calendar=RangeCalendar()))

    assert client.tables["offers"][0]["date_ranges"] == []


def test_store_missing_row_raises_not_found() -> None:
    store = SupabaseOfferStore(client=_FakeClient({"offers": []}))

    with pytest.raises(OfferNotFoundError):
        store.load_offer("blane-404")


def test_store_error_response_raises_store_error() -> None:
    client = _FakeClient({"offers": [_range_row()]})
    client.error = "permission denied"
    store = SupabaseOfferStore(client=client)

    with pytest.raises(OfferStoreError):
        store.load_offer("blane-1")

    with pytest.raises(OfferStoreError):
        store.save_offer(row_to_offer(_range_row()))


# ---------------------------------------------------------------------------
# Supabase booking ledger
# ---------------------------------------------------------------------------


def test_ledger_counts_from_counter_table() -> None:
    client = _FakeClient(
        {
            "booking_counters": [
                {"offer_id": "blane-1", "scope": "perSlotOrDay", "unit_key": "2025-04-10", "amount": 2},
            ]
        }
    )
    ledger = SupabaseBookingLedger(client=client)

    assert ledger.count_bookings("blane-1", Scope.PER_SLOT_OR_DAY, "2025-04-10") == 2
    assert ledger.count_bookings("blane-1", Scope.PER_SLOT_OR_DAY, "2025-04-11") == 0


def test_ledger_reserve_calls_conditional_function() -> None:
    client = _FakeClient()
    ledger = SupabaseBookingLedger(client=client)

    assert ledger.try_reserve("blane-1", Scope.TOTAL, "*", 2, 10)

    function, params = client.rpc_calls[0]
    assert function == "try_reserve_capacity"
    assert params == {
        "p_offer_id": "blane-1",
        "p_scope": "total",
        "p_unit_key": "*",
        "p_amount": 2,
        "p_ceiling": 10,
    }


def test_ledger_reserve_refusal_is_false() -> None:
    client = _FakeClient()
    client.rpc_outcome = {"success": False, "amount": 10}

    assert not SupabaseBookingLedger(client=client).try_reserve("blane-1", Scope.TOTAL, "*", 1, 10)


def test_ledger_accepts_json_body_raised_as_api_error() -> None:
    client = _FakeClient()
    client.rpc_outcome = APIError({"success": True, "amount": 3})

    assert SupabaseBookingLedger(client=client).try_reserve("blane-1", Scope.TOTAL, "*", 1, 10)


def test_ledger_faults_raise_unavailable() -> None:
    client = _FakeClient()
    client.rpc_outcome = ConnectionError("reset by peer")
    ledger = SupabaseBookingLedger(client=client)

    with pytest.raises(LedgerUnavailableError):
        ledger.try_reserve("blane-1", Scope.TOTAL, "*", 1, 10)

    with pytest.raises(LedgerUnavailableError):
        ledger.release("blane-1", Scope.TOTAL, "*", 1)

    client.error = "relation does not exist"
    with pytest.raises(LedgerUnavailableError):
        ledger.count_bookings("blane-1", Scope.TOTAL, "*")
