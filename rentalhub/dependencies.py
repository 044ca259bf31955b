"""
RentalHub Backend — FastAPI Dependencies
==========================================

What:  Authentication, role checks, ownership checks and pagination params
       shared by every route module.
How:   Plain FastAPI `Depends` callables. The DB session dependency is
       cached per request, so the user lookup here and the handler share
       one session and one transaction.

Token sources (first match wins):
    1. Authorization: Bearer <jwt>
    2. access_token cookie (set by POST /api/auth/login)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Query, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.exceptions import AuthenticationError, PermissionDeniedError
from rentalhub.models.user import ROLE_ADMIN, User
from rentalhub.security import TOKEN_TYPE_ACCESS, decode_token

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(ACCESS_COOKIE) or None


async def _load_user(db: AsyncSession, token: str) -> User:
    payload = decode_token(token, expected_type=TOKEN_TYPE_ACCESS)
    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise AuthenticationError("Invalid authentication token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("User no longer exists")
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Required authentication. Raises 401 when no valid token is present."""
    token = extract_token(request)
    if not token:
        raise AuthenticationError("Authentication required")
    user = await _load_user(db, token)
    request.state.user_id = str(user.id)
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Optional authentication: a missing or invalid token yields None."""
    token = extract_token(request)
    if not token:
        return None
    try:
        return await _load_user(db, token)
    except AuthenticationError:
        return None


def require_roles(*roles: str) -> Callable:
    """
    Dependency factory restricting an endpoint to the given roles.

    Example:
        @router.post("/facilities")
        async def create(user: User = Depends(require_roles("owner", "admin"))):
    """

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.info("Role check failed: user %s has role '%s', needs %s", user.id, user.role, roles)
            raise PermissionDeniedError(
                "Insufficient permissions",
                context={"required_roles": list(roles)},
            )
        return user

    return checker


def is_owner_or_admin(user: User, owner_id: Optional[uuid.UUID]) -> bool:
    return user.role == ROLE_ADMIN or (owner_id is not None and user.id == owner_id)


def ensure_owner_or_admin(
    user: User,
    owner_id: Optional[uuid.UUID],
    message: str = "You do not have permission to modify this resource",
) -> None:
    if not is_owner_or_admin(user, owner_id):
        raise PermissionDeniedError(message)


# ── Pagination ────────────────────────────────────────────────────────────

@dataclass
class Pagination:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination_params(default_limit: int = 20) -> Callable[..., Pagination]:
    """Builds a `page`/`limit` query dependency (limit capped at 100)."""

    def dependency(
        page: int = Query(default=1, ge=1, description="Page number (1-based)"),
        limit: int = Query(default=default_limit, ge=1, le=100, description="Items per page"),
    ) -> Pagination:
        return Pagination(page=page, limit=limit)

    return dependency
