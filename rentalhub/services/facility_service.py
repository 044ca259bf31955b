"""
RentalHub Backend — Facility Service
======================================

What:  Facility listing (with court/product counts), detail, create,
       partial update and soft delete.
Who:   routes/facilities.py. CourtService/ProductService reuse
       `get_facility_for_owner()` for their ownership checks.

Visibility:
    Non-admins (including anonymous callers) only ever see active
    facilities; an owner can still open their own inactive facility by id.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentalhub.dependencies import Pagination, ensure_owner_or_admin
from rentalhub.exceptions import DatabaseError, NotFoundError, RentalHubError
from rentalhub.models.court import Court
from rentalhub.models.facility import Facility
from rentalhub.models.mixins import apply_changes
from rentalhub.models.product import Product
from rentalhub.models.user import ROLE_ADMIN, User
from rentalhub.schemas.court import CourtResponse, FacilityWithCourts
from rentalhub.schemas.facility import (
    FacilityCreate,
    FacilityListItem,
    FacilityResponse,
    FacilityUpdate,
)

logger = logging.getLogger(__name__)


class FacilityService:

    async def list_facilities(
        self,
        db: AsyncSession,
        pagination: Pagination,
        user: Optional[User] = None,
        owner_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        city: Optional[str] = None,
        sport_type: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[FacilityListItem], int]:
        try:
            conditions = []
            if owner_id:
                conditions.append(Facility.owner_id == owner_id)
            if search:
                pattern = f"%{search}%"
                conditions.append(
                    or_(
                        Facility.name.ilike(pattern),
                        Facility.description.ilike(pattern),
                        Facility.address.ilike(pattern),
                    )
                )
            if city:
                conditions.append(Facility.address.ilike(f"%{city}%"))
            if sport_type:
                conditions.append(
                    Facility.courts.any(
                        and_(Court.sport_type == sport_type, Court.is_active.is_(True))
                    )
                )
            # Non-admins never see inactive facilities, whatever they ask for.
            if user is None or user.role != ROLE_ADMIN:
                conditions.append(Facility.is_active.is_(True))
            elif is_active is not None:
                conditions.append(Facility.is_active.is_(is_active))

            court_count = (
                select(func.count(Court.id))
                .where(Court.facility_id == Facility.id)
                .correlate(Facility)
                .scalar_subquery()
            )
            product_count = (
                select(func.count(Product.id))
                .where(Product.facility_id == Facility.id)
                .correlate(Facility)
                .scalar_subquery()
            )

            query = (
                select(
                    Facility,
                    court_count.label("court_count"),
                    product_count.label("product_count"),
                )
                .where(*conditions)
                .order_by(Facility.created_at.desc())
                .offset(pagination.offset)
                .limit(pagination.limit)
            )
            rows = (await db.execute(query)).all()

            total = (
                await db.execute(select(func.count(Facility.id)).where(*conditions))
            ).scalar() or 0

            items = [
                FacilityListItem.model_validate(facility).model_copy(
                    update={"court_count": courts or 0, "product_count": products or 0}
                )
                for facility, courts, products in rows
            ]
            return items, total

        except Exception as e:
            logger.error("Database error listing facilities: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve facilities. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_facility(
        self,
        db: AsyncSession,
        facility_id: uuid.UUID,
        user: Optional[User] = None,
    ) -> FacilityWithCourts:
        result = await db.execute(
            select(Facility)
            .options(selectinload(Facility.courts))
            .where(Facility.id == facility_id)
        )
        facility = result.scalar_one_or_none()
        can_see_inactive = user is not None and (
            user.role == ROLE_ADMIN or user.id == getattr(facility, "owner_id", None)
        )
        if facility is None or (not facility.is_active and not can_see_inactive):
            raise NotFoundError(resource="facility", resource_id=str(facility_id))

        courts = [
            CourtResponse.model_validate(court)
            for court in sorted(facility.courts, key=lambda c: c.name)
            if court.is_active or can_see_inactive
        ]
        return FacilityWithCourts.model_validate(facility).model_copy(update={"courts": courts})

    async def get_facility_for_owner(
        self, db: AsyncSession, facility_id: uuid.UUID, user: User
    ) -> Facility:
        """Loads a facility and checks the caller owns it (or is admin)."""
        facility = await db.get(Facility, facility_id)
        if facility is None:
            raise NotFoundError(resource="facility", resource_id=str(facility_id))
        ensure_owner_or_admin(user, facility.owner_id, "You do not own this facility")
        return facility

    async def create_facility(
        self, db: AsyncSession, user: User, payload: FacilityCreate
    ) -> FacilityResponse:
        try:
            data = payload.model_dump(mode="json")
            facility = Facility(owner_id=user.id, **data)
            db.add(facility)
            await db.flush()
            await db.refresh(facility)
            logger.info("Facility created: %s by owner %s", facility.id, user.id)
            return FacilityResponse.model_validate(facility)
        except RentalHubError:
            raise
        except Exception as e:
            logger.error("Failed to create facility: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the facility. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def update_facility(
        self,
        db: AsyncSession,
        facility_id: uuid.UUID,
        user: User,
        payload: FacilityUpdate,
    ) -> FacilityResponse:
        facility = await self.get_facility_for_owner(db, facility_id, user)
        apply_changes(facility, payload.model_dump(mode="json", exclude_unset=True))
        await db.flush()
        await db.refresh(facility)
        logger.info("Facility updated: %s", facility.id)
        return FacilityResponse.model_validate(facility)

    async def delete_facility(
        self, db: AsyncSession, facility_id: uuid.UUID, user: User
    ) -> None:
        facility = await self.get_facility_for_owner(db, facility_id, user)
        facility.is_active = False
        await db.flush()
        logger.info("Facility deactivated: %s", facility.id)


facility_service = FacilityService()
