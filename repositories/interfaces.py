"""
Collaborator interfaces (repository pattern).

Stores must be swappable and speak in domain models. The engine depends only on
these interfaces; Supabase-backed and in-memory implementations live beside
them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from domain.capacity import Scope
from domain.offer import Offer


class OfferNotFoundError(LookupError):
    """Raised when an offer does not exist."""

    def __init__(self, offer_id: str) -> None:
        super().__init__(f"Offer not found: {offer_id}")
        self.offer_id = offer_id


class OfferStoreError(RuntimeError):
    """Persistence collaborator is unreachable or refused the write."""


class LedgerUnavailableError(RuntimeError):
    """
    Transient fault from the booking ledger.

    Retryable by the caller; never to be treated as a rejection.
    """


class OfferStore(ABC):
    """Persistence collaborator for offers."""

    @abstractmethod
    def load_offer(self, offer_id: str) -> Offer:
        """
        Return the offer.

        Raises:
            OfferNotFoundError: If the offer does not exist.
            OfferStoreError: If the store cannot be reached.
        """
        ...

    @abstractmethod
    def save_offer(self, offer: Offer) -> None:
        """Persist the offer's scheduling fields (insert or replace)."""
        ...


class BookingLedger(ABC):
    """
    Store of actual booking counts, one counter per (offer, scope, key).

    Amounts are expressed in the unit of the ceiling they count against.
    """

    @abstractmethod
    def count_bookings(self, offer_id: str, scope: Scope, key: str) -> int:
        """Current amount on a counter (0 if it has never been touched)."""
        ...

    @abstractmethod
    def try_reserve(
        self,
        offer_id: str,
        scope: Scope,
        key: str,
        amount: int,
        ceiling: Optional[int],
    ) -> bool:
        """
        Atomically add `amount` to a counter if the result stays <= `ceiling`.

        A ceiling of None always succeeds. Returns True if the amount was
        reserved, False if the counter was left untouched.
        """
        ...

    @abstractmethod
    def release(self, offer_id: str, scope: Scope, key: str, amount: int) -> None:
        """Give back an amount previously reserved on a counter."""
        ...
