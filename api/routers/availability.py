"""
Availability API Endpoints.

Admin endpoints for editing an offer's date ranges, and storefront endpoints for
reading what is left to book.
"""

import logging
from datetime import date
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_availability_service, get_offer_store
from api.models import (
    AvailabilityResponse,
    DateRangeRequest,
    DateRangeResponse,
    PeriodListResponse,
    PeriodResponse,
    RangeListResponse,
    UnitAvailabilityResponse,
)
from domain.calendar import CalendarError, CalendarErrorKind, RangeCalendar
from domain.date_range import InvalidRangeEntry
from domain.offer import Offer
from repositories.interfaces import (
    LedgerUnavailableError,
    OfferNotFoundError,
    OfferStore,
    OfferStoreError,
)
from services.availability_service import AvailabilityQueryService
from services.editing_session import EditError
from services.offer_calendar_service import add_offer_range, remove_offer_range

logger = logging.getLogger(__name__)

router = APIRouter()

_CONFLICT_KINDS = {CalendarErrorKind.DUPLICATE, CalendarErrorKind.OUT_OF_BOUNDS}


def _edit_error_status(error: EditError) -> int:
    if isinstance(error, CalendarError):
        if error.kind in _CONFLICT_KINDS:
            return 409
        if error.kind is CalendarErrorKind.NOT_FOUND:
            return 404
    return 400


def _raise_edit_error(error: EditError) -> None:
    raise HTTPException(
        status_code=_edit_error_status(error),
        detail={"error": error.kind.value, "message": error.message},
    )


def _range_list(offer: Offer) -> RangeListResponse:
    calendar = offer.calendar
    entries = calendar.entries if isinstance(calendar, RangeCalendar) else ()
    return RangeListResponse(
        offer_id=offer.offer_id,
        ranges=[
            DateRangeResponse(start=r.start, end=r.end)
            for r in entries
            if not isinstance(r, InvalidRangeEntry)
        ],
        invalid_entries=sum(1 for r in entries if isinstance(r, InvalidRangeEntry)),
    )


def _handle_range_edit(result: Union[Offer, EditError]) -> RangeListResponse:
    if not isinstance(result, Offer):
        _raise_edit_error(result)
    return _range_list(result)


@router.post(
    "/offers/{offer_id}/availability/ranges",
    response_model=RangeListResponse,
    summary="Add Date Range",
    description="Add an inclusive date range to a range-mode offer, merging it with overlapping or adjacent ranges."
)
def add_range(
    offer_id: str,
    request: DateRangeRequest,
    store: OfferStore = Depends(get_offer_store),
):
    """
    Add a date range to an offer's availability.

    **Merging:**
    A range that overlaps or touches existing ranges is coalesced with them,
    so the stored list never contains overlapping or adjacent ranges.

    **Errors:**
    - `400` when a date is missing/unparseable, the range is inverted, or the
      offer schedules by weekly slots
    - `404` when the offer does not exist
    - `409` when the exact range already exists or lies outside the offer's
      validity window

    **Example request:**
    ```json
    {"start": "2025-04-10", "end": "2025-04-12"}
    ```
    """
    try:
        result = add_offer_range(store, offer_id, {"start": request.start, "end": request.end})
        return _handle_range_edit(result)

    except HTTPException:
        raise
    except OfferNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OfferStoreError as e:
        logger.error("Offer store unavailable while adding range to %s: %s", offer_id, e)
        raise HTTPException(status_code=503, detail="Offer store unavailable, please retry")
    except Exception:
        logger.exception("Failed to add date range to offer %s", offer_id)
        raise HTTPException(status_code=500, detail="Failed to add date range")


@router.delete(
    "/offers/{offer_id}/availability/ranges/{index}",
    response_model=RangeListResponse,
    summary="Remove Date Range",
    description="Remove the date range stored at the given position."
)
def delete_range(
    offer_id: str,
    index: int,
    store: OfferStore = Depends(get_offer_store),
):
    """
    Remove a date range by its position in the stored list.

    Removal is positional, so an entry that can no longer be parsed can still
    be deleted. Existing bookings inside the removed range are not cancelled.
    """
    try:
        result = remove_offer_range(store, offer_id, index)
        return _handle_range_edit(result)

    except HTTPException:
        raise
    except OfferNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OfferStoreError as e:
        logger.error("Offer store unavailable while removing range from %s: %s", offer_id, e)
        raise HTTPException(status_code=503, detail="Offer store unavailable, please retry")
    except Exception:
        logger.exception("Failed to remove date range %s from offer %s", index, offer_id)
        raise HTTPException(status_code=500, detail="Failed to remove date range")


@router.get(
    "/offers/{offer_id}/availability",
    response_model=AvailabilityResponse,
    summary="List Availability",
    description="Remaining quota for every bookable slot (slot mode) or day (range mode) on a date."
)
def get_availability(
    offer_id: str,
    day: date = Query(..., alias="date", description="Date to list (YYYY-MM-DD)"),
    service: AvailabilityQueryService = Depends(get_availability_service),
    store: OfferStore = Depends(get_offer_store),
):
    """
    List bookable units for a date.

    A unit with `remaining: null` has no ceiling. Dates in the past, outside
    the offer's validity window, or not in its calendar return an empty list.

    **Example usage:**
    ```
    GET /api/v1/offers/blane-42/availability?date=2025-04-14
    ```
    """
    try:
        offer = store.load_offer(offer_id)
        units = service.list_availability(offer_id, day)
        return AvailabilityResponse(
            offer_id=offer_id,
            date=day,
            mode=offer.mode.value,
            units=[
                UnitAvailabilityResponse(
                    unit_key=unit.unit_key,
                    date=unit.date,
                    start=unit.start,
                    end=unit.end,
                    remaining=unit.remaining,
                    available=unit.available,
                )
                for unit in units
            ],
        )

    except OfferNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (LedgerUnavailableError, OfferStoreError) as e:
        logger.error("Availability lookup for offer %s failed: %s", offer_id, e)
        raise HTTPException(status_code=503, detail="Availability temporarily unavailable, please retry")
    except Exception:
        logger.exception("Failed to list availability for offer %s", offer_id)
        raise HTTPException(status_code=500, detail="Failed to list availability")


@router.get(
    "/offers/{offer_id}/availability/periods",
    response_model=PeriodListResponse,
    summary="List Bookable Periods",
    description="Storefront view of a range-mode offer: one entry per stored date range."
)
def get_periods(
    offer_id: str,
    service: AvailabilityQueryService = Depends(get_availability_service),
):
    """
    List the date ranges of a range-mode offer with their remaining quota.

    Slot-mode offers have no periods and return an empty list.
    """
    try:
        periods = service.list_periods(offer_id)
        return PeriodListResponse(
            offer_id=offer_id,
            periods=[
                PeriodResponse(
                    start=p.period.start,
                    end=p.period.end,
                    days_count=p.days_count,
                    remaining=p.remaining,
                    booked=p.booked,
                    percentage_full=p.percentage_full,
                    includes_weekend=p.includes_weekend,
                    available=p.available,
                )
                for p in periods
            ],
        )

    except OfferNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (LedgerUnavailableError, OfferStoreError) as e:
        logger.error("Period lookup for offer %s failed: %s", offer_id, e)
        raise HTTPException(status_code=503, detail="Availability temporarily unavailable, please retry")
    except Exception:
        logger.exception("Failed to list periods for offer %s", offer_id)
        raise HTTPException(status_code=500, detail="Failed to list periods")
