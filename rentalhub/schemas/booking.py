"""
RentalHub Backend — Booking Schemas
=====================================

What:  Booking create/update bodies, booking responses and the
       availability-check request/response.

Datetimes:
    Naive datetimes are read as UTC. `end_datetime > start_datetime` is
    enforced here (422); BookingService re-checks it together with the
    "must start in the future" rule (400) because the clock moves between
    validation and the transaction.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from rentalhub.schemas.common import UTCDatetime
from rentalhub.schemas.court import CourtSummary


class BookingCreate(BaseModel):
    court_id: uuid.UUID
    start_datetime: UTCDatetime
    end_datetime: UTCDatetime
    notes: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_range(self) -> "BookingCreate":
        if self.end_datetime <= self.start_datetime:
            raise ValueError("end_datetime must be after start_datetime")
        return self


class BookingUpdate(BaseModel):
    status: Optional[Literal["draft", "confirmed", "cancelled", "completed"]] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class BookingResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    court_id: uuid.UUID
    start_datetime: datetime
    end_datetime: datetime
    status: str
    total_price: float
    payment_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingDetail(BookingResponse):
    court: Optional[CourtSummary] = None


class AvailabilityCheckRequest(BaseModel):
    """Exactly one of court_id / product_id must be given."""
    court_id: Optional[uuid.UUID] = None
    product_id: Optional[uuid.UUID] = None
    start_datetime: UTCDatetime
    end_datetime: UTCDatetime
    exclude_booking_id: Optional[uuid.UUID] = None
    exclude_rental_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def check_target(self) -> "AvailabilityCheckRequest":
        if (self.court_id is None) == (self.product_id is None):
            raise ValueError("Provide exactly one of court_id or product_id")
        if self.end_datetime <= self.start_datetime:
            raise ValueError("end_datetime must be after start_datetime")
        return self


class AvailabilityCheckResponse(BaseModel):
    available: bool
    court_id: Optional[uuid.UUID] = None
    product_id: Optional[uuid.UUID] = None
    conflicting_bookings: List[uuid.UUID] = Field(default_factory=list)
    total_quantity: Optional[int] = None
    reserved_quantity: Optional[int] = None
    remaining_quantity: Optional[int] = None
