"""Initial RentalHub schema

Revision ID: 001
Revises: None
Create Date: 2026-01-15 00:00:00.000000+00:00

What:  Creates every table: users, facilities, courts, products, bookings,
       rental orders and items, cart, reviews, payments, webhook logs and
       notifications.
How:   PostgreSQL specifics: gen_random_uuid() keys, TIMESTAMPTZ, JSONB,
       and a GiST exclusion constraint on bookings (btree_gist extension)
       so two live bookings can never overlap on the same court.

Rollback: downgrade() drops everything (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def _fk(name: str, target: str, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _jsonb_list(name: str) -> sa.Column:
    return sa.Column(
        name, postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False
    )


def _money(name: str, nullable: bool = False, default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(10, 2),
        server_default=sa.text("0") if default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, comment="Login email, stored lower-cased"),
        sa.Column("password_hash", sa.Text(), nullable=False, comment="bcrypt hash (passlib)"),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), server_default=sa.text("'user'"), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="users_email_key"),
        sa.CheckConstraint("role IN ('user', 'owner', 'admin')", name="ck_users_role"),
    )

    # ── facilities ────────────────────────────────────────────────────────
    op.create_table(
        "facilities",
        _id(),
        _fk("owner_id", "users.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("lat", sa.Numeric(10, 8), nullable=True),
        sa.Column("lng", sa.Numeric(11, 8), nullable=True),
        _jsonb_list("images"),
        _jsonb_list("amenities"),
        sa.Column("contact_phone", sa.String(20), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("operating_hours", postgresql.JSONB(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_facilities_owner_id", "facilities", ["owner_id"])
    op.create_index("idx_facilities_is_active", "facilities", ["is_active"])

    # ── courts ────────────────────────────────────────────────────────────
    op.create_table(
        "courts",
        _id(),
        _fk("facility_id", "facilities.id"),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("sport_type", sa.String(50), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        _money("price_per_hour"),
        _money("price_per_day", nullable=True),
        sa.Column("availability_config", postgresql.JSONB(), nullable=True),
        _jsonb_list("images"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("capacity > 0", name="ck_courts_capacity"),
        sa.CheckConstraint("price_per_hour > 0", name="ck_courts_price_per_hour"),
        sa.CheckConstraint(
            "price_per_day IS NULL OR price_per_day > 0", name="ck_courts_price_per_day"
        ),
    )
    op.create_index("idx_courts_facility_id", "courts", ["facility_id"])
    op.create_index("idx_courts_sport_type", "courts", ["sport_type"])

    # ── products ──────────────────────────────────────────────────────────
    op.create_table(
        "products",
        _id(),
        _fk("facility_id", "facilities.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        _money("price_per_hour", nullable=True),
        _money("price_per_day"),
        _money("price_per_week", nullable=True),
        _money("price_per_month", nullable=True),
        _money("deposit_amount", default=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=False),
        sa.Column("minimum_rental_days", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("maximum_rental_days", sa.Integer(), server_default=sa.text("365"), nullable=False),
        _jsonb_list("images"),
        sa.Column("specifications", postgresql.JSONB(), nullable=True),
        _jsonb_list("tags"),
        sa.Column("rating", sa.Numeric(3, 1), server_default=sa.text("0"), nullable=False),
        sa.Column("total_reviews", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("price_per_day > 0", name="ck_products_price_per_day"),
        sa.CheckConstraint("deposit_amount >= 0", name="ck_products_deposit"),
        sa.CheckConstraint("quantity >= 0", name="ck_products_quantity"),
        sa.CheckConstraint("available_quantity >= 0", name="ck_products_available_quantity"),
        sa.CheckConstraint("minimum_rental_days >= 1", name="ck_products_min_days"),
    )
    op.create_index("idx_products_facility_id", "products", ["facility_id"])
    op.create_index("idx_products_category", "products", ["category"])
    op.create_index("idx_products_is_active", "products", ["is_active"])
    op.create_index("idx_products_created_at", "products", [sa.text("created_at DESC")])

    # ── bookings ──────────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        _id(),
        _fk("user_id", "users.id"),
        _fk("court_id", "courts.id"),
        sa.Column("start_datetime", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_datetime", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'"), nullable=False),
        _money("total_price"),
        sa.Column("payment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("end_datetime > start_datetime", name="ck_bookings_time_range"),
        sa.CheckConstraint("total_price > 0", name="ck_bookings_total_price"),
        sa.CheckConstraint(
            "status IN ('draft', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
    )
    op.create_index(
        "idx_bookings_court_window", "bookings", ["court_id", "start_datetime", "end_datetime"]
    )
    op.create_index("idx_bookings_user_id", "bookings", ["user_id"])
    op.create_index("idx_bookings_created_at", "bookings", [sa.text("created_at DESC")])
    # Cancelled and completed bookings no longer hold the slot.
    op.execute(
        """
        ALTER TABLE bookings
        ADD CONSTRAINT ex_bookings_no_overlap
        EXCLUDE USING gist (
            court_id WITH =,
            tstzrange(start_datetime, end_datetime) WITH &&
        )
        WHERE (status IN ('draft', 'confirmed'))
        """
    )

    # ── rental orders & items ─────────────────────────────────────────────
    op.create_table(
        "rental_orders",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("start_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'draft'"), nullable=False),
        _money("total_amount"),
        _money("deposit_amount", default=True),
        sa.Column("payment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("return_condition", sa.Text(), nullable=True),
        _money("late_fees", default=True),
        _money("damage_fees", default=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("end_date > start_date", name="ck_rental_orders_date_range"),
        sa.CheckConstraint("total_amount > 0", name="ck_rental_orders_total"),
        sa.CheckConstraint("deposit_amount >= 0", name="ck_rental_orders_deposit"),
        sa.CheckConstraint("late_fees >= 0", name="ck_rental_orders_late_fees"),
        sa.CheckConstraint("damage_fees >= 0", name="ck_rental_orders_damage_fees"),
        sa.CheckConstraint(
            "status IN ('draft', 'confirmed', 'active', 'returned', 'cancelled', 'overdue')",
            name="ck_rental_orders_status",
        ),
    )
    op.create_index("idx_rental_orders_user_id", "rental_orders", ["user_id"])
    op.create_index("idx_rental_orders_status", "rental_orders", ["status"])
    op.create_index("idx_rental_orders_dates", "rental_orders", ["start_date", "end_date"])

    op.create_table(
        "rental_items",
        _id(),
        _fk("rental_order_id", "rental_orders.id"),
        _fk("product_id", "products.id"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price"),
        _money("total_price"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_rental_items_quantity"),
        sa.CheckConstraint("unit_price > 0", name="ck_rental_items_unit_price"),
        sa.CheckConstraint("total_price > 0", name="ck_rental_items_total_price"),
    )
    op.create_index("idx_rental_items_order_id", "rental_items", ["rental_order_id"])
    op.create_index("idx_rental_items_product_id", "rental_items", ["product_id"])

    # ── cart ──────────────────────────────────────────────────────────────
    op.create_table(
        "cart_items",
        _id(),
        _fk("user_id", "users.id"),
        _fk("product_id", "products.id"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default=sa.text("1"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_cart_items_quantity"),
        sa.CheckConstraint("end_date > start_date", name="ck_cart_items_date_range"),
    )
    op.create_index("idx_cart_items_user_id", "cart_items", ["user_id"])

    # ── reviews ───────────────────────────────────────────────────────────
    op.create_table(
        "reviews",
        _id(),
        _fk("product_id", "products.id"),
        _fk("user_id", "users.id"),
        _fk("rental_order_id", "rental_orders.id", ondelete="SET NULL", nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("rental_order_id", name="reviews_rental_order_id_key"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating"),
    )
    op.create_index("idx_reviews_product_id", "reviews", ["product_id"])
    op.create_index("idx_reviews_user_id", "reviews", ["user_id"])

    # ── payments & webhook log ────────────────────────────────────────────
    op.create_table(
        "payments",
        _id(),
        _fk("user_id", "users.id"),
        _money("amount"),
        sa.Column("currency", sa.String(3), server_default=sa.text("'INR'"), nullable=False),
        sa.Column("provider", sa.String(20), server_default=sa.text("'razorpay'"), nullable=False),
        sa.Column("provider_order_id", sa.String(100), nullable=True),
        sa.Column("provider_payment_id", sa.String(100), nullable=True),
        sa.Column("provider_signature", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("order_type", sa.String(20), nullable=True),
        _fk("booking_id", "bookings.id", ondelete="SET NULL", nullable=True),
        _fk("rental_order_id", "rental_orders.id", ondelete="SET NULL", nullable=True),
        _fk("original_payment_id", "payments.id", ondelete="SET NULL", nullable=True),
        sa.Column(
            "metadata", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_payments_user_id", "payments", ["user_id"])
    op.create_index("idx_payments_status", "payments", ["status"])
    op.create_index("idx_payments_provider_order_id", "payments", ["provider_order_id"])
    op.create_index("idx_payments_provider_payment_id", "payments", ["provider_payment_id"])
    op.create_index("idx_payments_original_payment_id", "payments", ["original_payment_id"])

    op.create_table(
        "webhook_logs",
        _id(),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("event", sa.String(100), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("signature_valid", sa.Boolean(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "processed_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── notifications ─────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notifications_user_unread", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    """Drop everything, children first. Extensions are left installed."""
    for table in (
        "notifications",
        "webhook_logs",
        "payments",
        "reviews",
        "cart_items",
        "rental_items",
        "rental_orders",
        "bookings",
        "products",
        "courts",
        "facilities",
        "users",
    ):
        op.drop_table(table)
