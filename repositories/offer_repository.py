"""
Offer repository (persistence).

This module provides *only* persistence operations for the scheduling fields of
an Offer. It contains no scheduling rules; it maps rows to domain models and
back.

Encoding notes:
- date_ranges may be stored as a JSON string or a JSON array, and older rows may
  hold the legacy nested encoding. Rows are decoded through the normalizer, and
  unparseable entries are kept (quarantined) so positional edits still line up.
- weekdays may be stored as a JSON string or an array of day names (English or
  French).
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Mapping, Optional

from domain.calendar import RangeCalendar, SlotCalendar, weekdays_from
from domain.capacity import CapacityPolicy, CeilingUnit, Scope
from domain.date_range import parse_range_list
from domain.offer import Offer, OfferMode, OfferStatus
from domain.time import parse_iso_date, parse_time_of_day
from repositories.interfaces import OfferNotFoundError, OfferStore, OfferStoreError

logger = logging.getLogger(__name__)

# Supabase table name for offers.
# Keep this aligned with your database schema.
_OFFERS_TABLE: str = "offers"


def _optional_ceiling(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value) or None


def _parse_weekdays(value: Any) -> list[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = json.loads(value)
    return list(value)


def _require_date(row: Mapping[str, Any], name: str) -> date:
    parsed = parse_iso_date(row.get(name))
    if parsed is None:
        raise OfferStoreError(f"Stored offer {row.get('offer_id')} has an invalid {name}")
    return parsed


def row_to_offer(row: Mapping[str, Any]) -> Offer:
    """Convert a stored row into an Offer."""

    offer_id = str(row["offer_id"])
    multiplier = row.get("persons_multiplier") or 1

    try:
        stored_units = row.get("ceiling_units") or {}
        if isinstance(stored_units, str):
            stored_units = json.loads(stored_units)
        units = {Scope(scope): CeilingUnit(unit) for scope, unit in stored_units.items()}

        policy = CapacityPolicy(
            max_total_bookings=_optional_ceiling(row.get("max_total_bookings")),
            max_per_slot_or_day=_optional_ceiling(row.get("max_per_slot_or_day")),
            max_per_calendar_day=_optional_ceiling(row.get("max_per_calendar_day")),
            persons_multiplier=int(multiplier),
            ceiling_units=units or {scope: CeilingUnit.BOOKINGS for scope in Scope},
        )

        if OfferMode(row.get("mode", OfferMode.RANGE.value)) is OfferMode.SLOT:
            calendar: SlotCalendar | RangeCalendar = SlotCalendar(
                weekdays=weekdays_from(_parse_weekdays(row.get("weekdays"))),
                daily_start=parse_time_of_day(row.get("daily_start")),
                daily_end=parse_time_of_day(row.get("daily_end")),
                slot_interval_minutes=int(row.get("slot_interval_minutes") or 60),
            )
        else:
            calendar = RangeCalendar(entries=tuple(parse_range_list(row.get("date_ranges"))))

        return Offer(
            offer_id=offer_id,
            active_from=_require_date(row, "active_from"),
            active_until=parse_iso_date(row.get("active_until")),
            calendar=calendar,
            capacity_policy=policy,
            status=OfferStatus(row.get("status", OfferStatus.DRAFT.value)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise OfferStoreError(f"Stored offer {offer_id} is malformed: {e}") from e


def offer_to_row(offer: Offer) -> dict[str, Any]:
    """Convert an Offer into the row written to the offers table."""

    policy = offer.capacity_policy
    row: dict[str, Any] = {
        "offer_id": offer.offer_id,
        "status": offer.status.value,
        "mode": offer.mode.value,
        "active_from": offer.active_from.isoformat(),
        "active_until": offer.active_until.isoformat() if offer.active_until else None,
        "max_total_bookings": policy.max_total_bookings or 0,
        "max_per_slot_or_day": policy.max_per_slot_or_day or 0,
        "max_per_calendar_day": policy.max_per_calendar_day or 0,
        "persons_multiplier": policy.persons_multiplier,
        "ceiling_units": {scope.value: policy.unit(scope).value for scope in Scope},
        "weekdays": [],
        "daily_start": None,
        "daily_end": None,
        "slot_interval_minutes": None,
        "date_ranges": [],
    }

    calendar = offer.calendar
    if isinstance(calendar, SlotCalendar):
        row["weekdays"] = [day.label for day in sorted(calendar.weekdays)]
        row["daily_start"] = calendar.daily_start.strftime("%H:%M")
        row["daily_end"] = calendar.daily_end.strftime("%H:%M")
        row["slot_interval_minutes"] = calendar.slot_interval_minutes
    else:
        row["date_ranges"] = [entry.to_payload() for entry in calendar.entries]
    return row


class SupabaseOfferStore(OfferStore):
    """Offer store backed by the Supabase `offers` table."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            from repositories.client import get_supabase

            self._client = get_supabase()
        return self._client

    def load_offer(self, offer_id: str) -> Offer:
        try:
            response = (
                self.client.table(_OFFERS_TABLE)
                .select("*")
                .eq("offer_id", offer_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise OfferStoreError(f"Failed to load offer: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise OfferStoreError(f"Failed to load offer: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            raise OfferNotFoundError(offer_id)
        return row_to_offer(rows[0])

    def save_offer(self, offer: Offer) -> None:
        payload = offer_to_row(offer)
        try:
            response = self.client.table(_OFFERS_TABLE).upsert(payload).execute()
        except Exception as e:
            raise OfferStoreError(f"Failed to save offer: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise OfferStoreError(f"Failed to save offer: {error}")
        logger.info("Saved offer %s (%s mode)", offer.offer_id, offer.mode.value)


__all__ = [
    "SupabaseOfferStore",
    "offer_to_row",
    "row_to_offer",
]
