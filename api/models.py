"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Calendar Models
# ============================================================================

class DateRangeRequest(BaseModel):
    """Raw date pair submitted by the admin editor."""
    start: Any = Field(..., description="Start date (YYYY-MM-DD)")
    end: Any = Field(..., description="End date (YYYY-MM-DD), inclusive")

    class Config:
        json_schema_extra = {
            "example": {
                "start": "2025-04-10",
                "end": "2025-04-12"
            }
        }


class DateRangeResponse(BaseModel):
    """Single stored date range."""
    start: dt.date
    end: dt.date


class RangeListResponse(BaseModel):
    """Range-mode calendar after an edit."""
    offer_id: str
    ranges: List[DateRangeResponse]
    invalid_entries: int = Field(
        0,
        description="Stored entries that could not be parsed (still removable by position)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "offer_id": "blane-42",
                "ranges": [
                    {"start": "2025-04-10", "end": "2025-04-15"},
                    {"start": "2025-04-20", "end": "2025-04-22"}
                ],
                "invalid_entries": 0
            }
        }


# ============================================================================
# Availability Models
# ============================================================================

class UnitAvailabilityResponse(BaseModel):
    """Remaining quota for one slot (slot mode) or day (range mode)."""
    unit_key: str
    date: dt.date
    start: Optional[dt.time] = None
    end: Optional[dt.time] = None
    remaining: Optional[int] = Field(None, description="Null means unlimited")
    available: bool


class AvailabilityResponse(BaseModel):
    """Bookable units for a date."""
    offer_id: str
    date: dt.date
    mode: str  # "slot" or "range"
    units: List[UnitAvailabilityResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "offer_id": "blane-42",
                "date": "2025-04-14",
                "mode": "slot",
                "units": [
                    {
                        "unit_key": "2025-04-14T09:00",
                        "date": "2025-04-14",
                        "start": "09:00:00",
                        "end": "09:30:00",
                        "remaining": 3,
                        "available": True
                    }
                ]
            }
        }


class PeriodResponse(BaseModel):
    """A stored date range as offered to customers."""
    start: dt.date
    end: dt.date
    days_count: int
    remaining: Optional[int] = None
    booked: int
    percentage_full: float
    includes_weekend: bool
    available: bool


class PeriodListResponse(BaseModel):
    offer_id: str
    periods: List[PeriodResponse]


# ============================================================================
# Booking Models
# ============================================================================

class BookingRequestModel(BaseModel):
    """Request to book an offer."""
    offer_id: str = Field(..., min_length=1)
    date: dt.date
    time: Optional[dt.time] = Field(None, description="Slot start time; required for slot-mode offers")
    quantity: int = Field(1, description="Number of booking units")

    class Config:
        json_schema_extra = {
            "example": {
                "offer_id": "blane-42",
                "date": "2025-04-14",
                "time": "09:30",
                "quantity": 2
            }
        }


class BookingResponse(BaseModel):
    """Outcome of a booking attempt."""
    status: str  # "Admitted" or "Rejected"
    reason: Optional[str] = None
    offer_id: str
    unit_key: str
    quantity: int
    decided_at: dt.datetime
    reserved: Dict[str, int] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "status": "Rejected",
                "reason": "SlotExceeded",
                "offer_id": "blane-42",
                "unit_key": "2025-04-14T09:30",
                "quantity": 2,
                "decided_at": "2025-04-01T12:00:00Z",
                "reserved": {}
            }
        }


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "DUPLICATE",
                "detail": "This exact date range already exists",
                "status_code": 409
            }
        }
