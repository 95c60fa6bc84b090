"""
In-memory collaborators.

Used for local development (STORE_BACKEND=memory) and by the test suite. The
ledger performs its conditional increment under a lock, giving the same
atomicity guarantee as the `try_reserve_capacity` database function.
"""

from __future__ import annotations

from threading import Lock
from typing import Dict, Iterable, Optional, Tuple

from domain.capacity import Scope
from domain.offer import Offer
from repositories.interfaces import BookingLedger, OfferNotFoundError, OfferStore

CounterKey = Tuple[str, Scope, str]


class InMemoryOfferStore(OfferStore):
    def __init__(self, offers: Iterable[Offer] = ()) -> None:
        self._offers: Dict[str, Offer] = {offer.offer_id: offer for offer in offers}
        self._lock = Lock()

    def load_offer(self, offer_id: str) -> Offer:
        with self._lock:
            offer = self._offers.get(offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        return offer

    def save_offer(self, offer: Offer) -> None:
        with self._lock:
            self._offers[offer.offer_id] = offer


class InMemoryBookingLedger(BookingLedger):
    def __init__(self) -> None:
        self._counters: Dict[CounterKey, int] = {}
        self._lock = Lock()

    def count_bookings(self, offer_id: str, scope: Scope, key: str) -> int:
        with self._lock:
            return self._counters.get((offer_id, scope, key), 0)

    def try_reserve(
        self,
        offer_id: str,
        scope: Scope,
        key: str,
        amount: int,
        ceiling: Optional[int],
    ) -> bool:
        counter = (offer_id, scope, key)
        with self._lock:
            current = self._counters.get(counter, 0)
            if ceiling is not None and current + amount > ceiling:
                return False
            self._counters[counter] = current + amount
            return True

    def release(self, offer_id: str, scope: Scope, key: str, amount: int) -> None:
        counter = (offer_id, scope, key)
        with self._lock:
            self._counters[counter] = max(0, self._counters.get(counter, 0) - amount)
