"""
RentalHub Backend — Facility & Court Route Handlers
=====================================================

What:  CRUD for facilities (venues) and the courts inside them.
Who:   Public browse pages (optional auth) and the owner dashboard.

Permissions:
    Reads are public; writes need role owner/admin, and the service layer
    checks the caller owns the facility in question.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.dependencies import Pagination, get_optional_user, pagination_params, require_roles
from rentalhub.models.user import ROLE_ADMIN, ROLE_OWNER, User
from rentalhub.schemas.common import ErrorResponse, MessageResponse, PaginationMeta, SuccessResponse
from rentalhub.schemas.court import (
    CourtCreate,
    CourtResponse,
    CourtUpdate,
    CourtWithFacility,
    FacilityWithCourts,
)
from rentalhub.schemas.facility import (
    FacilityCreate,
    FacilityListItem,
    FacilityResponse,
    FacilityUpdate,
)
from rentalhub.services.court_service import court_service
from rentalhub.services.facility_service import facility_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Facilities"])

_owner_or_admin = require_roles(ROLE_OWNER, ROLE_ADMIN)
_write_errors = {
    403: {"description": "Not the facility owner", "model": ErrorResponse},
    404: {"description": "Not found", "model": ErrorResponse},
}


# ── Facilities ────────────────────────────────────────────────────────────

@router.get(
    "/facilities",
    response_model=SuccessResponse[List[FacilityListItem]],
    summary="List facilities",
    description="Active facilities (admins may filter on is_active), newest first, with court and product counts.",
)
async def list_facilities(
    response: Response,
    pagination: Pagination = Depends(pagination_params(default_limit=10)),
    owner_id: Optional[UUID] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=100, description="Matches name, description or address"),
    city: Optional[str] = Query(default=None, max_length=100),
    sport_type: Optional[str] = Query(default=None, max_length=50),
    is_active: Optional[bool] = Query(default=None),
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[List[FacilityListItem]]:
    items, total = await facility_service.list_facilities(
        db,
        pagination,
        user=user,
        owner_id=owner_id,
        search=search,
        city=city,
        sport_type=sport_type,
        is_active=is_active,
    )
    response.headers["X-Total-Count"] = str(total)
    return SuccessResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
    )


@router.post(
    "/facilities",
    response_model=SuccessResponse[FacilityResponse],
    status_code=status.HTTP_201_CREATED,
    responses={403: {"description": "Owner or admin role required", "model": ErrorResponse}},
    summary="Create a facility owned by the caller",
)
async def create_facility(
    payload: FacilityCreate,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[FacilityResponse]:
    facility = await facility_service.create_facility(db, user, payload)
    return SuccessResponse(data=facility, message="Facility created successfully")


@router.get(
    "/facilities/{facility_id}",
    response_model=SuccessResponse[FacilityWithCourts],
    responses={404: {"description": "Facility not found", "model": ErrorResponse}},
    summary="Facility detail with its courts",
)
async def get_facility(
    facility_id: UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[FacilityWithCourts]:
    return SuccessResponse(data=await facility_service.get_facility(db, facility_id, user))


@router.put(
    "/facilities/{facility_id}",
    response_model=SuccessResponse[FacilityResponse],
    responses=_write_errors,
    summary="Partially update a facility",
)
async def update_facility(
    facility_id: UUID,
    payload: FacilityUpdate,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[FacilityResponse]:
    facility = await facility_service.update_facility(db, facility_id, user, payload)
    return SuccessResponse(data=facility, message="Facility updated successfully")


@router.delete(
    "/facilities/{facility_id}",
    response_model=MessageResponse,
    responses=_write_errors,
    summary="Deactivate a facility",
)
async def delete_facility(
    facility_id: UUID,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await facility_service.delete_facility(db, facility_id, user)
    return MessageResponse(message="Facility deleted successfully")


# ── Courts ────────────────────────────────────────────────────────────────

@router.get(
    "/courts",
    response_model=SuccessResponse[List[CourtWithFacility]],
    tags=["Courts"],
    summary="List courts",
)
async def list_courts(
    response: Response,
    pagination: Pagination = Depends(pagination_params()),
    facility_id: Optional[UUID] = Query(default=None),
    sport_type: Optional[str] = Query(default=None, max_length=50),
    is_active: Optional[bool] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[List[CourtWithFacility]]:
    items, total = await court_service.list_courts(
        db, pagination, facility_id=facility_id, sport_type=sport_type, is_active=is_active
    )
    response.headers["X-Total-Count"] = str(total)
    return SuccessResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
    )


@router.post(
    "/courts",
    response_model=SuccessResponse[CourtResponse],
    status_code=status.HTTP_201_CREATED,
    responses=_write_errors,
    tags=["Courts"],
    summary="Add a court to a facility",
)
async def create_court(
    payload: CourtCreate,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CourtResponse]:
    court = await court_service.create_court(db, user, payload)
    return SuccessResponse(data=court, message="Court created successfully")


@router.get(
    "/courts/{court_id}",
    response_model=SuccessResponse[CourtWithFacility],
    responses={404: {"description": "Court not found", "model": ErrorResponse}},
    tags=["Courts"],
    summary="Court detail",
)
async def get_court(
    court_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CourtWithFacility]:
    return SuccessResponse(data=await court_service.get_court(db, court_id))


@router.put(
    "/courts/{court_id}",
    response_model=SuccessResponse[CourtResponse],
    responses=_write_errors,
    tags=["Courts"],
    summary="Partially update a court",
)
async def update_court(
    court_id: UUID,
    payload: CourtUpdate,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CourtResponse]:
    court = await court_service.update_court(db, court_id, user, payload)
    return SuccessResponse(data=court, message="Court updated successfully")


@router.delete(
    "/courts/{court_id}",
    response_model=MessageResponse,
    responses=_write_errors,
    tags=["Courts"],
    summary="Deactivate a court",
)
async def delete_court(
    court_id: UUID,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await court_service.delete_court(db, court_id, user)
    return MessageResponse(message="Court deleted successfully")
