"""
RentalHub Backend — Rental Order Models
=========================================

What:  `rental_orders` (one checkout covering a date range) and
       `rental_items` (product lines with the unit price locked in at
       order time).
Who:   RentalService, PaymentService, ReviewService (reviews may reference
       a returned rental).

Lifecycle (enforced by RENTAL_TRANSITIONS in services/rental_service.py):
    draft → confirmed → active → returned
      │         │          └──▶ overdue → returned | cancelled
      └─────────┴──▶ cancelled
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, utcnow

RENTAL_DRAFT = "draft"
RENTAL_CONFIRMED = "confirmed"
RENTAL_ACTIVE = "active"
RENTAL_RETURNED = "returned"
RENTAL_CANCELLED = "cancelled"
RENTAL_OVERDUE = "overdue"
RENTAL_STATUSES = (
    RENTAL_DRAFT,
    RENTAL_CONFIRMED,
    RENTAL_ACTIVE,
    RENTAL_RETURNED,
    RENTAL_CANCELLED,
    RENTAL_OVERDUE,
)


class RentalOrder(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "rental_orders"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RENTAL_DRAFT,
        server_default=text("'draft'"),
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    return_condition: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    late_fees: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    damage_fees: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    items: Mapped[List["RentalItem"]] = relationship(
        back_populates="rental_order",
        cascade="all, delete-orphan",
    )
    user: Mapped["User"] = relationship()  # noqa: F821

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_rental_orders_date_range"),
        CheckConstraint("total_amount > 0", name="ck_rental_orders_total"),
        CheckConstraint("deposit_amount >= 0", name="ck_rental_orders_deposit"),
        CheckConstraint("late_fees >= 0", name="ck_rental_orders_late_fees"),
        CheckConstraint("damage_fees >= 0", name="ck_rental_orders_damage_fees"),
        CheckConstraint(
            "status IN ('draft', 'confirmed', 'active', 'returned', 'cancelled', 'overdue')",
            name="ck_rental_orders_status",
        ),
        Index("idx_rental_orders_user_id", "user_id"),
        Index("idx_rental_orders_status", "status"),
        Index("idx_rental_orders_dates", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<RentalOrder(id={self.id}, status='{self.status}', total={self.total_amount})>"


class RentalItem(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "rental_items"

    rental_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rental_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    rental_order: Mapped["RentalOrder"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()  # noqa: F821

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_rental_items_quantity"),
        CheckConstraint("unit_price > 0", name="ck_rental_items_unit_price"),
        CheckConstraint("total_price > 0", name="ck_rental_items_total_price"),
        Index("idx_rental_items_order_id", "rental_order_id"),
        Index("idx_rental_items_product_id", "product_id"),
    )
