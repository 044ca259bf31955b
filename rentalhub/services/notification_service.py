"""
RentalHub Backend — Notification Service
==========================================

What:  Writes and reads in-app notifications.
Who:   PaymentService (payment/refund events) and routes/notifications.py.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.dependencies import Pagination
from rentalhub.exceptions import NotFoundError
from rentalhub.models.notification import Notification
from rentalhub.models.user import User
from rentalhub.schemas.notification import NotificationResponse

logger = logging.getLogger(__name__)

TYPE_PAYMENT_SUCCESS = "payment_success"
TYPE_PAYMENT_FAILED = "payment_failed"
TYPE_REFUND_PROCESSED = "refund_processed"


class NotificationService:

    async def notify(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        type_: str,
        title: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            details=details or {},
            is_read=False,
        )
        db.add(notification)
        await db.flush()
        logger.info("Notification '%s' queued for user %s", type_, user_id)
        return notification

    async def list_notifications(
        self,
        db: AsyncSession,
        user: User,
        pagination: Pagination,
        unread_only: bool = False,
    ) -> Tuple[List[NotificationResponse], int]:
        conditions = [Notification.user_id == user.id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        result = await db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        total = (
            await db.execute(select(func.count(Notification.id)).where(*conditions))
        ).scalar() or 0
        return [NotificationResponse.model_validate(n) for n in result.scalars().all()], total

    async def mark_read(
        self, db: AsyncSession, notification_id: uuid.UUID, user: User
    ) -> NotificationResponse:
        notification = await db.get(Notification, notification_id)
        if notification is None or notification.user_id != user.id:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))
        notification.is_read = True
        await db.flush()
        return NotificationResponse.model_validate(notification)

    async def mark_all_read(self, db: AsyncSession, user: User) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user.id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount or 0


notification_service = NotificationService()
