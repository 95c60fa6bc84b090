"""
Collaborator wiring for the API.

Routers depend on these providers so tests can swap in other implementations
with `app.dependency_overrides`.
"""

from __future__ import annotations

from functools import lru_cache

from api.settings import settings
from repositories.interfaces import BookingLedger, OfferStore
from services.availability_service import AvailabilityQueryService


@lru_cache(maxsize=1)
def get_offer_store() -> OfferStore:
    if settings.store_backend == "supabase":
        from repositories.offer_repository import SupabaseOfferStore

        return SupabaseOfferStore()

    from repositories.memory import InMemoryOfferStore

    return InMemoryOfferStore()


@lru_cache(maxsize=1)
def get_booking_ledger() -> BookingLedger:
    if settings.store_backend == "supabase":
        from repositories.ledger_repository import SupabaseBookingLedger

        return SupabaseBookingLedger()

    from repositories.memory import InMemoryBookingLedger

    return InMemoryBookingLedger()


@lru_cache(maxsize=1)
def get_availability_service() -> AvailabilityQueryService:
    # One instance per process: its per-unit locks must be shared by all requests.
    return AvailabilityQueryService(
        offers=get_offer_store(),
        ledger=get_booking_ledger(),
        horizon_days=settings.booking_horizon_days,
    )
