"""
Booking ledger repository (persistence).

Counters live in the `booking_counters` table, one row per
(offer_id, scope, unit_key). Reservation goes through the
`try_reserve_capacity` PostgreSQL function, which:
- Locks the counter row (inserting it at 0 if missing)
- Adds p_amount only if amount + p_amount <= p_ceiling (or p_ceiling is NULL)
- Returns {"success": bool, "amount": int}
All in a single atomic transaction, so concurrent API processes can never push
a counter past its ceiling.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from domain.capacity import Scope
from repositories.interfaces import BookingLedger, LedgerUnavailableError

logger = logging.getLogger(__name__)

# Supabase table name for booking counters.
# Keep this aligned with your database schema.
_COUNTERS_TABLE: str = "booking_counters"


class SupabaseBookingLedger(BookingLedger):
    """Booking ledger backed by Supabase (PostgREST + RPC)."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            from repositories.client import get_supabase

            self._client = get_supabase()
        return self._client

    def count_bookings(self, offer_id: str, scope: Scope, key: str) -> int:
        try:
            response = (
                self.client.table(_COUNTERS_TABLE)
                .select("amount")
                .eq("offer_id", offer_id)
                .eq("scope", scope.value)
                .eq("unit_key", key)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise LedgerUnavailableError(f"Failed to count bookings: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise LedgerUnavailableError(f"Failed to count bookings: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return 0
        return int(rows[0].get("amount") or 0)

    def try_reserve(
        self,
        offer_id: str,
        scope: Scope,
        key: str,
        amount: int,
        ceiling: Optional[int],
    ) -> bool:
        result = self._rpc(
            "try_reserve_capacity",
            {
                "p_offer_id": offer_id,
                "p_scope": scope.value,
                "p_unit_key": key,
                "p_amount": amount,
                "p_ceiling": ceiling,
            },
        )
        return bool(result.get("success"))

    def release(self, offer_id: str, scope: Scope, key: str, amount: int) -> None:
        self._rpc(
            "release_capacity",
            {
                "p_offer_id": offer_id,
                "p_scope": scope.value,
                "p_unit_key": key,
                "p_amount": amount,
            },
        )

    def _rpc(self, function: str, params: dict[str, Any]) -> dict[str, Any]:
        from postgrest.exceptions import APIError

        try:
            response = self.client.rpc(function, params).execute()
        except APIError as e:
            # supabase-py raises APIError for some JSON bodies returned by
            # PostgreSQL functions, including successful ones.
            try:
                error_data = e.json() if callable(getattr(e, "json", None)) else {}
            except ValueError:
                error_data = {}
            if isinstance(error_data, dict) and "success" in error_data:
                return error_data
            raise LedgerUnavailableError(f"{function} failed: {e}") from e
        except Exception as e:
            raise LedgerUnavailableError(f"{function} failed: {e}") from e

        error = getattr(response, "error", None)
        if error:
            raise LedgerUnavailableError(f"{function} failed: {error}")

        data = getattr(response, "data", None)
        if not isinstance(data, dict):
            raise LedgerUnavailableError(f"{function} returned an unexpected payload: {data!r}")
        return data


__all__ = ["SupabaseBookingLedger"]
