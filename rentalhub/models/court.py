"""
RentalHub Backend — Court Model
=================================

What:  A bookable playing area inside a facility, priced per hour.
Who:   CourtService (CRUD) and BookingService, which locks the court row
       (`SELECT ... FOR UPDATE`) while checking a new slot for conflicts.
"""

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Court(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "courts"

    facility_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sport_type: Mapped[str] = mapped_column(String(50), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_hour: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_per_day: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    # {"advance_booking_days": 30, "min_booking_duration": 1,
    #  "max_booking_duration": 4, "blackout_dates": ["2025-12-25"]}
    availability_config: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    images: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    facility: Mapped["Facility"] = relationship(back_populates="courts")  # noqa: F821
    bookings: Mapped[List["Booking"]] = relationship(back_populates="court")  # noqa: F821

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_courts_capacity"),
        CheckConstraint("price_per_hour > 0", name="ck_courts_price_per_hour"),
        CheckConstraint(
            "price_per_day IS NULL OR price_per_day > 0", name="ck_courts_price_per_day"
        ),
        Index("idx_courts_facility_id", "facility_id"),
        Index("idx_courts_sport_type", "sport_type"),
    )

    def __repr__(self) -> str:
        return f"<Court(id={self.id}, name='{self.name}', sport='{self.sport_type}')>"
