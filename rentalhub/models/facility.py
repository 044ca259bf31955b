"""
RentalHub Backend — Facility Model
====================================

What:  ORM model for `facilities`: a venue owned by an `owner` user that
       hosts bookable courts and rentable products.
Who:   FacilityService; ownership checks for courts and products walk
       through `facility.owner_id`.

Soft delete:
    Facilities are never removed by the API. DELETE flips `is_active`,
    which hides the facility from non-admin listings and blocks new
    bookings/rentals against its courts and products.
"""

import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class Facility(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "facilities"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    lat: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 8), nullable=True)
    lng: Mapped[Optional[Decimal]] = mapped_column(Numeric(11, 8), nullable=True)
    images: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    amenities: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # {"monday": {"open": "06:00", "close": "22:00", "closed": false}, ...}
    operating_hours: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    owner: Mapped["User"] = relationship(back_populates="facilities")  # noqa: F821
    courts: Mapped[List["Court"]] = relationship(back_populates="facility")  # noqa: F821
    products: Mapped[List["Product"]] = relationship(back_populates="facility")  # noqa: F821

    __table_args__ = (
        Index("idx_facilities_owner_id", "owner_id"),
        Index("idx_facilities_is_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Facility(id={self.id}, name='{self.name}', active={self.is_active})>"
