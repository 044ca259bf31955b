"""
RentalHub Backend — Cart Item Model
=====================================

What:  A product the user intends to rent for a date range. Prices are
       not snapshotted here; CartService prices every item from the live
       product row each time the cart is read.
"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin


class CartItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "cart_items"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )

    product: Mapped[Optional["Product"]] = relationship()  # noqa: F821

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity"),
        CheckConstraint("end_date > start_date", name="ck_cart_items_date_range"),
        Index("idx_cart_items_user_id", "user_id"),
    )
