"""
RentalHub Backend — Password Hashing & JWT Helpers
====================================================

What:  bcrypt password hashing (passlib) and HS256 access/refresh tokens
       (python-jose).
Who:   AuthService (register, login, refresh) and the auth dependencies.

Token claims:
    sub   → user id (string UUID)
    email → user email
    role  → user role at issue time
    type  → "access" | "refresh"; decode_token() rejects the wrong type
    iat / exp
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from rentalhub.config import settings
from rentalhub.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Returns False for malformed hashes instead of raising."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error("Password verification error: %s", str(e))
        return False


def _create_token(
    user_id: str,
    token_type: str,
    expires_in: int,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, email: str, role: str) -> str:
    return _create_token(
        user_id,
        TOKEN_TYPE_ACCESS,
        settings.access_token_expire_seconds,
        {"email": email, "role": role},
    )


def create_refresh_token(user_id: str) -> str:
    return _create_token(user_id, TOKEN_TYPE_REFRESH, settings.refresh_token_expire_seconds)


def decode_token(token: str, expected_type: str = TOKEN_TYPE_ACCESS) -> Dict[str, Any]:
    """
    Verifies signature, expiry and token type.

    Raises:
        AuthenticationError: expired, tampered, or wrong `type` claim.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        logger.debug("JWT decode failed: %s", str(e))
        raise AuthenticationError("Invalid authentication token")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")
    if not payload.get("sub"):
        raise AuthenticationError("Invalid authentication token")
    return payload
