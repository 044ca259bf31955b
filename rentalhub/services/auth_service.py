"""
RentalHub Backend — Auth Service
==================================

What:  Registration, credential checks, token issuance/refresh and profile
       updates.
Who:   routes/auth.py (the /api/auth and /api/users routers).

Flow (POST /api/auth/login):
    email → lookup (case-insensitive) → bcrypt verify → access + refresh JWT
    The route sets both tokens as httpOnly cookies and also returns them.
"""

import logging
import uuid
from typing import Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.config import settings
from rentalhub.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    RentalHubError,
)
from rentalhub.models.user import ROLE_USER, User
from rentalhub.schemas.auth import (
    AuthResponse,
    RegisterRequest,
    TokenPair,
    UserResponse,
    UserUpdateRequest,
    sanitize_phone,
)
from rentalhub.security import (
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)


class AuthService:
    """Stateless; every method receives the request's session."""

    async def register(self, db: AsyncSession, payload: RegisterRequest) -> UserResponse:
        email = payload.email.lower()
        try:
            existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(
                    message="An account with this email already exists",
                    context={"field": "email"},
                )

            user = User(
                email=email,
                password_hash=hash_password(payload.password),
                full_name=payload.full_name,
                phone=sanitize_phone(payload.phone),
                role=ROLE_USER,
                is_verified=False,
            )
            db.add(user)
            await db.flush()
            await db.refresh(user)
            logger.info("User registered: %s", user.id)
            return UserResponse.model_validate(user)

        except RentalHubError:
            raise
        except Exception as e:
            logger.error("Registration failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the account. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login attempt for %s", email.lower())
            raise AuthenticationError("Invalid email or password")
        return user

    def issue_tokens(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=create_access_token(str(user.id), user.email, user.role),
            refresh_token=create_refresh_token(str(user.id)),
            expires_in=settings.access_token_expire_seconds,
        )

    async def login(self, db: AsyncSession, email: str, password: str) -> AuthResponse:
        user = await self.authenticate(db, email, password)
        logger.info("User logged in: %s", user.id)
        return AuthResponse(user=UserResponse.model_validate(user), tokens=self.issue_tokens(user))

    async def refresh(self, db: AsyncSession, refresh_token: str) -> Tuple[User, TokenPair]:
        """Validates a refresh token and returns a new access token (no rotation)."""
        payload = decode_token(refresh_token, expected_type=TOKEN_TYPE_REFRESH)
        try:
            user_id = uuid.UUID(str(payload["sub"]))
        except ValueError:
            raise AuthenticationError("Invalid refresh token")

        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise AuthenticationError("User no longer exists")

        tokens = TokenPair(
            access_token=create_access_token(str(user.id), user.email, user.role),
            expires_in=settings.access_token_expire_seconds,
        )
        return user, tokens

    async def update_profile(
        self, db: AsyncSession, user: User, payload: UserUpdateRequest
    ) -> UserResponse:
        changes = payload.model_dump(exclude_unset=True)
        if "full_name" in changes and changes["full_name"] is not None:
            user.full_name = changes["full_name"].strip()
        if "phone" in changes:
            user.phone = sanitize_phone(changes["phone"])
        if "avatar_url" in changes:
            user.avatar_url = changes["avatar_url"]
        try:
            await db.flush()
            await db.refresh(user)
        except Exception as e:
            logger.error("Profile update failed for %s: %s", user.id, str(e))
            raise DatabaseError(context={"user_id": str(user.id)})
        return UserResponse.model_validate(user)


auth_service = AuthService()
