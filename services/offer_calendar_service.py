"""
Offer calendar service.

Load -> edit -> commit round-trips for single range edits coming from the admin
API. Published offers go through exactly the same validated path as drafts;
there is no direct overwrite of stored ranges.
"""

from __future__ import annotations

from typing import Any, Union

from domain.offer import Offer
from repositories.interfaces import OfferStore
from services.editing_session import EditError, OfferEditingSession


def add_offer_range(store: OfferStore, offer_id: str, raw: Any) -> Union[Offer, EditError]:
    """
    Add a raw date pair to a range-mode offer and persist the result.

    Raises:
        OfferNotFoundError: If the offer does not exist.
        OfferStoreError: If the store cannot be reached.
    """

    session = OfferEditingSession(store.load_offer(offer_id))
    result = session.add_range(raw)
    if not isinstance(result, Offer):
        return result
    return session.commit(store)


def remove_offer_range(store: OfferStore, offer_id: str, index: int) -> Union[Offer, EditError]:
    """
    Remove the range stored at `index` and persist the result.

    Raises:
        OfferNotFoundError: If the offer does not exist.
        OfferStoreError: If the store cannot be reached.
    """

    session = OfferEditingSession(store.load_offer(offer_id))
    result = session.remove_range(index)
    if not isinstance(result, Offer):
        return result
    return session.commit(store)


__all__ = [
    "add_offer_range",
    "remove_offer_range",
]
