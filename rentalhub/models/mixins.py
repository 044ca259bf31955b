"""
Shared column helpers for RentalHub models.

Every table stores UUID primary keys generated server-side and UTC
timestamps; these helpers keep the column definitions identical across
models (and in step with alembic/versions/001_initial_schema.py).
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    # onupdate keeps updated_at honest for ORM writes; bulk UPDATEs issued
    # through sqlalchemy.update() set it explicitly.
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


def apply_changes(instance: Any, changes: Dict[str, Any]) -> List[str]:
    """
    Copies a partial update onto an ORM object and returns the fields set.

    An explicit null for a NOT NULL column means "leave it alone", so a
    `{"name": null}` body never reaches the database as a NULL.
    """
    columns = instance.__table__.columns
    applied = []
    for field, value in changes.items():
        if value is None and field in columns and not columns[field].nullable:
            continue
        setattr(instance, field, value)
        applied.append(field)
    return applied
