"""RentalHub Backend — Notification Route Handlers (the caller's inbox)."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.dependencies import Pagination, get_current_user, pagination_params
from rentalhub.models.user import User
from rentalhub.schemas.common import ErrorResponse, PaginationMeta, SuccessResponse
from rentalhub.schemas.notification import MarkedReadResponse, NotificationResponse
from rentalhub.services.notification_service import notification_service

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", response_model=SuccessResponse[List[NotificationResponse]], summary="Your notifications")
async def list_notifications(
    response: Response,
    pagination: Pagination = Depends(pagination_params()),
    unread_only: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[List[NotificationResponse]]:
    items, total = await notification_service.list_notifications(db, user, pagination, unread_only)
    response.headers["X-Total-Count"] = str(total)
    return SuccessResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
    )


# Declared before /{notification_id}/read so "read-all" is not parsed as an id.
@router.put("/read-all", response_model=SuccessResponse[MarkedReadResponse], summary="Mark all as read")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[MarkedReadResponse]:
    updated = await notification_service.mark_all_read(db, user)
    return SuccessResponse(data=MarkedReadResponse(updated=updated))


@router.put(
    "/{notification_id}/read",
    response_model=SuccessResponse[NotificationResponse],
    responses={404: {"description": "Notification not found", "model": ErrorResponse}},
    summary="Mark one notification as read",
)
async def mark_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[NotificationResponse]:
    return SuccessResponse(data=await notification_service.mark_read(db, notification_id, user))
