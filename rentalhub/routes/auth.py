"""
RentalHub Backend — Auth & User Route Handlers
================================================

What:  Registration, login/logout, token refresh and the current user's
       profile.
How:   Login sets httpOnly `access_token` / `refresh_token` cookies and
       also returns the tokens in the body for non-browser clients.
Who:   Frontend login/registration pages and the account screen.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.config import settings
from rentalhub.database import get_db_session
from rentalhub.dependencies import ACCESS_COOKIE, REFRESH_COOKIE, get_current_user
from rentalhub.exceptions import AuthenticationError
from rentalhub.models.user import User
from rentalhub.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserResponse,
    UserUpdateRequest,
)
from rentalhub.schemas.common import ErrorResponse, MessageResponse, SuccessResponse
from rentalhub.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])
users_router = APIRouter(prefix="/api/users", tags=["Users"])


def _set_cookie(response: Response, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=name,
        value=value,
        max_age=max_age,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )


@router.post(
    "/register",
    response_model=SuccessResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "Email already registered", "model": ErrorResponse},
        422: {"description": "Invalid registration data", "model": ErrorResponse},
    },
    summary="Create a user account",
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[UserResponse]:
    user = await auth_service.register(db, payload)
    return SuccessResponse(data=user, message="User registered successfully")


@router.post(
    "/login",
    response_model=SuccessResponse[AuthResponse],
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Log in and receive JWT cookies",
)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[AuthResponse]:
    result = await auth_service.login(db, payload.email, payload.password)
    _set_cookie(response, ACCESS_COOKIE, result.tokens.access_token, settings.access_token_expire_seconds)
    if result.tokens.refresh_token:
        _set_cookie(
            response, REFRESH_COOKIE, result.tokens.refresh_token, settings.refresh_token_expire_seconds
        )
    return SuccessResponse(data=result, message="Login successful")


@router.post("/logout", response_model=MessageResponse, summary="Clear auth cookies")
async def logout(response: Response) -> MessageResponse:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, path="/", samesite="lax", secure=settings.cookie_secure, httponly=True)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/refresh",
    response_model=SuccessResponse[TokenPair],
    responses={401: {"description": "Missing or invalid refresh token", "model": ErrorResponse}},
    summary="Exchange a refresh token for a new access token",
)
async def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = None,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[TokenPair]:
    token = (payload.refresh_token if payload else None) or request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise AuthenticationError("Refresh token required")
    _, tokens = await auth_service.refresh(db, token)
    _set_cookie(response, ACCESS_COOKIE, tokens.access_token, settings.access_token_expire_seconds)
    return SuccessResponse(data=tokens, message="Token refreshed")


@router.get("/me", response_model=SuccessResponse[UserResponse], summary="Current user")
async def auth_me(user: User = Depends(get_current_user)) -> SuccessResponse[UserResponse]:
    return SuccessResponse(data=UserResponse.model_validate(user))


@users_router.get("/me", response_model=SuccessResponse[UserResponse], summary="Current user profile")
async def get_profile(user: User = Depends(get_current_user)) -> SuccessResponse[UserResponse]:
    return SuccessResponse(data=UserResponse.model_validate(user))


@users_router.patch(
    "/me",
    response_model=SuccessResponse[UserResponse],
    summary="Update name, phone or avatar",
)
async def update_profile(
    payload: UserUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[UserResponse]:
    updated = await auth_service.update_profile(db, user, payload)
    return SuccessResponse(data=updated, message="Profile updated")
