"""RentalHub Backend — Court Schemas."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl, model_validator

from rentalhub.schemas.facility import FacilityResponse, FacilitySummary


class AvailabilityConfig(BaseModel):
    """
    Booking window rules stored on the court.

    Durations are in hours; blackout_dates are days on which the court
    cannot be booked at all.
    """
    advance_booking_days: int = Field(default=30, ge=0, le=365)
    min_booking_duration: float = Field(default=1, gt=0)
    max_booking_duration: float = Field(default=8, gt=0)
    blackout_dates: List[date] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_duration_bounds(self) -> "AvailabilityConfig":
        if self.max_booking_duration < self.min_booking_duration:
            raise ValueError("max_booking_duration must be >= min_booking_duration")
        return self


class CourtCreate(BaseModel):
    facility_id: uuid.UUID
    name: str = Field(min_length=1, max_length=100)
    sport_type: str = Field(min_length=1, max_length=50)
    capacity: int = Field(gt=0)
    price_per_hour: Decimal = Field(gt=0)
    price_per_day: Optional[Decimal] = Field(default=None, gt=0)
    availability_config: Optional[AvailabilityConfig] = None
    images: List[HttpUrl] = Field(default_factory=list)
    is_active: bool = True


class CourtUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    sport_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    capacity: Optional[int] = Field(default=None, gt=0)
    price_per_hour: Optional[Decimal] = Field(default=None, gt=0)
    price_per_day: Optional[Decimal] = Field(default=None, gt=0)
    availability_config: Optional[AvailabilityConfig] = None
    images: Optional[List[HttpUrl]] = None
    is_active: Optional[bool] = None


class CourtResponse(BaseModel):
    id: uuid.UUID
    facility_id: uuid.UUID
    name: str
    sport_type: str
    capacity: int
    price_per_hour: float
    price_per_day: Optional[float] = None
    availability_config: Optional[dict] = None
    images: List[str] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CourtWithFacility(CourtResponse):
    facility: Optional[FacilitySummary] = None


class FacilityWithCourts(FacilityResponse):
    """GET /api/facilities/{id}: the facility plus its courts."""
    courts: List[CourtResponse] = Field(default_factory=list)


class CourtSummary(BaseModel):
    id: uuid.UUID
    name: str
    sport_type: str
    price_per_hour: float
    facility: Optional[FacilitySummary] = None

    model_config = {"from_attributes": True}
