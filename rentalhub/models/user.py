"""
RentalHub Backend — User Model
================================

What:  ORM model for the `users` table (accounts for renters, facility
       owners and administrators).
Who:   AuthService (register/login), auth dependencies, every ownership check.

Roles:
    user   → books courts, rents products, writes reviews
    owner  → additionally manages facilities, courts and products they own
    admin  → unrestricted access
"""

from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentalhub.database import Base
from rentalhub.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin

ROLE_USER = "user"
ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_USER, ROLE_OWNER, ROLE_ADMIN)


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    # Stored lower-cased so the UNIQUE constraint is case-insensitive in practice.
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Login email, stored lower-cased",
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="bcrypt hash (passlib)",
    )
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="E.164-ish phone number; NULL when the submitted value was unusable",
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ROLE_USER,
        server_default=text("'user'"),
    )
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    facilities: Mapped[List["Facility"]] = relationship(back_populates="owner")  # noqa: F821

    __table_args__ = (
        CheckConstraint("role IN ('user', 'owner', 'admin')", name="ck_users_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
