"""
RentalHub Backend — Product Model
===================================

What:  Rentable equipment stocked by a facility.
Who:   ProductService (catalogue), RentalService (pricing + inventory),
       CartService, ReviewService (rating aggregate).

Pricing tiers:
    price_per_hour / price_per_day / price_per_week / price_per_month.
    Only price_per_day is mandatory; RentalService picks the best tier for
    the rental duration (see services/rental_service.py).

Inventory:
    quantity            → units the facility owns
    available_quantity  → units not currently out on an active rental
    The difference is adjusted by rental status transitions only.

Rating aggregate:
    rating / total_reviews are derived columns rewritten by
    review_service.refresh_product_rating() after every review write.
"""

import uuid
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin

PRICING_TIERS = ("hour", "day", "week", "month")


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "products"

    facility_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Pricing ───────────────────────────────────────────────────────────
    price_per_hour: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_per_week: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    price_per_month: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    deposit_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )

    # ── Inventory ─────────────────────────────────────────────────────────
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    minimum_rental_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )
    maximum_rental_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=365, server_default=text("365")
    )

    images: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    specifications: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    tags: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    # ── Rating aggregate (derived) ────────────────────────────────────────
    rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 1), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    total_reviews: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    facility: Mapped["Facility"] = relationship(back_populates="products")  # noqa: F821
    reviews: Mapped[List["Review"]] = relationship(back_populates="product")  # noqa: F821

    __table_args__ = (
        CheckConstraint("price_per_day > 0", name="ck_products_price_per_day"),
        CheckConstraint("deposit_amount >= 0", name="ck_products_deposit"),
        CheckConstraint("quantity >= 0", name="ck_products_quantity"),
        CheckConstraint("available_quantity >= 0", name="ck_products_available_quantity"),
        CheckConstraint("minimum_rental_days >= 1", name="ck_products_min_days"),
        Index("idx_products_facility_id", "facility_id"),
        Index("idx_products_category", "category"),
        Index("idx_products_is_active", "is_active"),
        Index("idx_products_created_at", "created_at"),
    )

    @property
    def pricing(self) -> Dict[str, Optional[Decimal]]:
        return {
            "hour": self.price_per_hour,
            "day": self.price_per_day,
            "week": self.price_per_week,
            "month": self.price_per_month,
        }

    def __repr__(self) -> str:
        return (
            f"<Product(id={self.id}, name='{self.name}', "
            f"available={self.available_quantity}/{self.quantity})>"
        )
