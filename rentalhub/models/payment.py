"""
RentalHub Backend — Payment & Webhook Log Models
==================================================

What:  `payments` (one row per Razorpay order attempt, plus one negative
       row per refund) and `webhook_logs` (audit trail of every gateway
       callback, valid or not).
Who:   PaymentService (checkout, refunds and webhook handling).

Payment lifecycle:
    pending ──verify ok──▶ completed ──refund──▶ (new row, status=refunded)
       └────verify bad───▶ failed
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, utcnow

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_REFUNDED)

ORDER_TYPE_BOOKING = "booking"
ORDER_TYPE_RENTAL = "rental"


class Payment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "payments"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Negative for refund rows.
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="INR", server_default=text("'INR'")
    )
    provider: Mapped[str] = mapped_column(
        String(20), nullable=False, default="razorpay", server_default=text("'razorpay'")
    )
    provider_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    provider_payment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    provider_signature: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PAYMENT_PENDING,
        server_default=text("'pending'"),
    )
    order_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True,
    )
    rental_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rental_orders.id", ondelete="SET NULL"),
        nullable=True,
    )
    original_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("payments.id", ondelete="SET NULL"),
        nullable=True,
        comment="Set on refund rows; points at the payment being refunded",
    )
    # `metadata` is reserved on declarative classes, hence the attribute name.
    details: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )

    __table_args__ = (
        Index("idx_payments_user_id", "user_id"),
        Index("idx_payments_status", "status"),
        Index("idx_payments_provider_order_id", "provider_order_id"),
        Index("idx_payments_provider_payment_id", "provider_payment_id"),
        Index("idx_payments_original_payment_id", "original_payment_id"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, status='{self.status}')>"


class WebhookLog(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "webhook_logs"

    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    event: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    signature_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
