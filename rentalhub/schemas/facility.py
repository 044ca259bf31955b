"""
RentalHub Backend — Facility Schemas
======================================

What:  Create/update bodies and responses for /api/facilities.
How:   FacilityUpdate mirrors FacilityCreate with every field optional;
       services apply only the fields present in `model_dump(exclude_unset=True)`,
       and an explicit null for a required column is ignored.
"""

import re
import uuid
from datetime import datetime
from typing import Annotated, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, HttpUrl, field_validator

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DayHours(BaseModel):
    open: Optional[str] = Field(default=None, description="HH:MM, 24h clock")
    close: Optional[str] = Field(default=None, description="HH:MM, 24h clock")
    closed: bool = False

    @field_validator("open", "close")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _TIME_PATTERN.match(v):
            raise ValueError(f"Invalid time '{v}', expected HH:MM")
        return v


def _validate_operating_hours(v: Optional[Dict[str, DayHours]]) -> Optional[Dict[str, DayHours]]:
    if v is None:
        return v
    unknown = set(v) - set(WEEKDAYS)
    if unknown:
        raise ValueError(f"Unknown weekday(s): {', '.join(sorted(unknown))}")
    return v


OperatingHours = Annotated[Optional[Dict[str, DayHours]], AfterValidator(_validate_operating_hours)]


class FacilityBase(BaseModel):
    description: Optional[str] = Field(default=None, max_length=1000)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    contact_phone: Optional[str] = Field(default=None, min_length=7, max_length=20)
    contact_email: Optional[EmailStr] = None


class FacilityCreate(FacilityBase):
    name: str = Field(min_length=1, max_length=200)
    address: str = Field(min_length=1, max_length=500)
    images: List[HttpUrl] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    operating_hours: OperatingHours = None
    is_active: bool = True


class FacilityUpdate(FacilityBase):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    images: Optional[List[HttpUrl]] = None
    amenities: Optional[List[str]] = None
    operating_hours: OperatingHours = None
    is_active: Optional[bool] = None


class FacilityResponse(BaseModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    description: Optional[str] = None
    address: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    images: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    operating_hours: Optional[dict] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FacilityListItem(FacilityResponse):
    court_count: int = 0
    product_count: int = 0


class FacilitySummary(BaseModel):
    id: uuid.UUID
    name: str
    address: str

    model_config = {"from_attributes": True}
