"""
RentalHub Backend — Booking Model
===================================

What:  A reservation of one court for a time range.
Who:   BookingService (create with conflict check, list, status updates),
       PaymentService (confirms a draft booking once paid).

Lifecycle:
    draft ──▶ confirmed ──▶ completed
      │            │
      └──▶ cancelled ◀──┘

    Only `draft` and `confirmed` bookings hold their slot. The Postgres
    exclusion constraint created in migration 001 mirrors that rule so two
    overlapping holding bookings can never coexist, even outside the API.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin

BOOKING_DRAFT = "draft"
BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"
BOOKING_COMPLETED = "completed"
BOOKING_STATUSES = (BOOKING_DRAFT, BOOKING_CONFIRMED, BOOKING_CANCELLED, BOOKING_COMPLETED)

# Statuses that occupy the court for their time range.
SLOT_HOLDING_STATUSES = (BOOKING_CONFIRMED, BOOKING_DRAFT)


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    court_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("courts.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_datetime: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_datetime: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BOOKING_DRAFT,
        server_default=text("'draft'"),
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    court: Mapped["Court"] = relationship(back_populates="bookings")  # noqa: F821
    user: Mapped["User"] = relationship()  # noqa: F821

    __table_args__ = (
        CheckConstraint("end_datetime > start_datetime", name="ck_bookings_time_range"),
        CheckConstraint("total_price > 0", name="ck_bookings_total_price"),
        CheckConstraint(
            "status IN ('draft', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        Index("idx_bookings_court_window", "court_id", "start_datetime", "end_datetime"),
        Index("idx_bookings_user_id", "user_id"),
        Index("idx_bookings_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, court={self.court_id}, status='{self.status}', "
            f"{self.start_datetime} → {self.end_datetime})>"
        )
