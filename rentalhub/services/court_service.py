"""
RentalHub Backend — Court Service
===================================

What:  Court listing, detail, create, partial update and soft delete.
Who:   routes/facilities.py (the /api/courts endpoints).

Ownership:
    A court belongs to whoever owns its facility; writes load the facility
    through FacilityService.get_facility_for_owner().
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentalhub.dependencies import Pagination
from rentalhub.exceptions import DatabaseError, NotFoundError, RentalHubError
from rentalhub.models.court import Court
from rentalhub.models.mixins import apply_changes
from rentalhub.models.user import User
from rentalhub.schemas.court import CourtCreate, CourtResponse, CourtUpdate, CourtWithFacility
from rentalhub.services.facility_service import facility_service

logger = logging.getLogger(__name__)


class CourtService:

    async def list_courts(
        self,
        db: AsyncSession,
        pagination: Pagination,
        facility_id: Optional[uuid.UUID] = None,
        sport_type: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[CourtWithFacility], int]:
        try:
            conditions = []
            if facility_id:
                conditions.append(Court.facility_id == facility_id)
            if sport_type:
                conditions.append(Court.sport_type == sport_type)
            if is_active is not None:
                conditions.append(Court.is_active.is_(is_active))

            result = await db.execute(
                select(Court)
                .options(selectinload(Court.facility))
                .where(*conditions)
                .order_by(Court.created_at.desc())
                .offset(pagination.offset)
                .limit(pagination.limit)
            )
            courts = result.scalars().all()
            total = (await db.execute(select(func.count(Court.id)).where(*conditions))).scalar() or 0
            return [CourtWithFacility.model_validate(c) for c in courts], total

        except Exception as e:
            logger.error("Database error listing courts: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve courts. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_court(self, db: AsyncSession, court_id: uuid.UUID) -> CourtWithFacility:
        result = await db.execute(
            select(Court).options(selectinload(Court.facility)).where(Court.id == court_id)
        )
        court = result.scalar_one_or_none()
        if court is None:
            raise NotFoundError(resource="court", resource_id=str(court_id))
        return CourtWithFacility.model_validate(court)

    async def _get_court_for_owner(self, db: AsyncSession, court_id: uuid.UUID, user: User) -> Court:
        court = await db.get(Court, court_id)
        if court is None:
            raise NotFoundError(resource="court", resource_id=str(court_id))
        await facility_service.get_facility_for_owner(db, court.facility_id, user)
        return court

    async def create_court(self, db: AsyncSession, user: User, payload: CourtCreate) -> CourtResponse:
        await facility_service.get_facility_for_owner(db, payload.facility_id, user)
        try:
            data = payload.model_dump(mode="json", exclude={"facility_id", "price_per_hour", "price_per_day"})
            court = Court(
                facility_id=payload.facility_id,
                price_per_hour=payload.price_per_hour,
                price_per_day=payload.price_per_day,
                **data,
            )
            db.add(court)
            await db.flush()
            await db.refresh(court)
            logger.info("Court created: %s in facility %s", court.id, court.facility_id)
            return CourtResponse.model_validate(court)
        except RentalHubError:
            raise
        except Exception as e:
            logger.error("Failed to create court: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the court. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def update_court(
        self, db: AsyncSession, court_id: uuid.UUID, user: User, payload: CourtUpdate
    ) -> CourtResponse:
        court = await self._get_court_for_owner(db, court_id, user)
        changes = payload.model_dump(mode="json", exclude_unset=True)
        # Keep Decimal precision for money columns.
        for money_field in ("price_per_hour", "price_per_day"):
            if money_field in changes:
                changes[money_field] = getattr(payload, money_field)
        apply_changes(court, changes)
        await db.flush()
        await db.refresh(court)
        logger.info("Court updated: %s", court.id)
        return CourtResponse.model_validate(court)

    async def delete_court(self, db: AsyncSession, court_id: uuid.UUID, user: User) -> None:
        court = await self._get_court_for_owner(db, court_id, user)
        court.is_active = False
        await db.flush()
        logger.info("Court deactivated: %s", court.id)


court_service = CourtService()
