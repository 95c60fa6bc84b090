"""
Bookings API Endpoints.

Admission endpoint: checks a booking request against the offer's calendar and
capacity policy and reserves its quota when admitted.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from api.dependencies import get_availability_service
from api.models import BookingRequestModel, BookingResponse, ErrorResponse
from domain.booking import BookingOutcome, BookingRequest
from repositories.interfaces import (
    LedgerUnavailableError,
    OfferNotFoundError,
    OfferStoreError,
)
from services.availability_service import AvailabilityQueryService

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(outcome: BookingOutcome) -> BookingResponse:
    return BookingResponse(
        status=outcome.state.value,
        reason=outcome.reason.value if outcome.reason is not None else None,
        offer_id=outcome.request.offer_id,
        unit_key=outcome.request.unit_key(),
        quantity=outcome.request.quantity,
        decided_at=outcome.decided_at,
        reserved={scope.value: amount for scope, amount in outcome.reserved.items()},
    )


@router.post(
    "/bookings",
    response_model=BookingResponse,
    status_code=201,
    summary="Book Offer",
    description="Admit a booking if the offer is available and every capacity ceiling still has room.",
    responses={
        409: {"model": BookingResponse, "description": "Booking rejected"},
        503: {"model": ErrorResponse, "description": "Booking ledger unavailable"},
    },
)
def create_booking(
    request: BookingRequestModel,
    service: AvailabilityQueryService = Depends(get_availability_service),
):
    """
    Run one booking attempt.

    **Checks, in order:**
    1. The date (and slot time, for slot-mode offers) is in the offer's calendar
    2. Quantity is at least 1
    3. Total, per slot/day and per calendar day ceilings

    **Rejection reasons:**
    `NotAvailable`, `QuantityInvalid`, `TotalExceeded`, `SlotExceeded`,
    `DailyExceeded`. Rejections return `409` and reserve nothing.

    **Ledger faults:**
    `503` means the attempt could not be decided and nothing was reserved;
    it is safe to retry.

    **Example request:**
    ```json
    {"offer_id": "blane-42", "date": "2025-04-14", "time": "09:30", "quantity": 2}
    ```
    """
    try:
        outcome = service.book(
            BookingRequest(
                offer_id=request.offer_id,
                date=request.date,
                quantity=request.quantity,
                time=request.time,
            )
        )
        response = _to_response(outcome)
        if not outcome.admitted:
            return JSONResponse(status_code=409, content=response.model_dump(mode="json"))
        return response

    except OfferNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (LedgerUnavailableError, OfferStoreError) as e:
        logger.error("Booking for offer %s could not be decided: %s", request.offer_id, e)
        raise HTTPException(status_code=503, detail="Booking temporarily unavailable, please retry")
    except Exception:
        logger.exception("Failed to process booking for offer %s", request.offer_id)
        raise HTTPException(status_code=500, detail="Failed to process booking")
