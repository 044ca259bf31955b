"""
RentalHub Backend — Booking Route Handlers
============================================

What:  Court bookings and the shared availability check.
Who:   Booking calendar and checkout pages; owner dashboard (bookings for
       their courts).

Status Codes:
    201 → booking created as `draft` (pay to confirm)
    404 → court missing/inactive, or booking not visible to the caller
    409 → slot overlaps a draft/confirmed booking (details list the ids)
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.dependencies import Pagination, get_current_user, pagination_params
from rentalhub.models.user import User
from rentalhub.schemas.booking import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    BookingCreate,
    BookingDetail,
    BookingResponse,
    BookingUpdate,
)
from rentalhub.schemas.common import (
    ErrorResponse,
    PaginationMeta,
    SuccessResponse,
    ensure_utc,
)
from rentalhub.services.booking_service import booking_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bookings"])


@router.get(
    "/bookings",
    response_model=SuccessResponse[List[BookingDetail]],
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="List bookings visible to the caller",
    description=(
        "Users see their own bookings, owners see bookings on their facilities' courts "
        "and admins see everything. start_date/end_date bound the booking window."
    ),
)
async def list_bookings(
    response: Response,
    pagination: Pagination = Depends(pagination_params()),
    user_id: Optional[UUID] = Query(default=None, description="Admin only"),
    court_id: Optional[UUID] = Query(default=None),
    facility_id: Optional[UUID] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    start_date: Optional[datetime] = Query(default=None, description="start_datetime >= this"),
    end_date: Optional[datetime] = Query(default=None, description="end_datetime <= this"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[List[BookingDetail]]:
    items, total = await booking_service.list_bookings(
        db,
        user,
        pagination,
        user_id=user_id,
        court_id=court_id,
        facility_id=facility_id,
        status=status_filter,
        start_date=ensure_utc(start_date),
        end_date=ensure_utc(end_date),
    )
    response.headers["X-Total-Count"] = str(total)
    return SuccessResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
    )


@router.post(
    "/bookings",
    response_model=SuccessResponse[BookingResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Start in the past or facility inactive", "model": ErrorResponse},
        404: {"description": "Court not found or inactive", "model": ErrorResponse},
        409: {"description": "Slot already booked", "model": ErrorResponse},
    },
    summary="Book a court slot",
)
async def create_booking(
    payload: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[BookingResponse]:
    booking = await booking_service.create_booking(db, user, payload)
    return SuccessResponse(data=booking, message="Booking created successfully")


@router.get(
    "/bookings/{booking_id}",
    response_model=SuccessResponse[BookingDetail],
    responses={404: {"description": "Booking not found", "model": ErrorResponse}},
    summary="Booking detail",
)
async def get_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[BookingDetail]:
    return SuccessResponse(data=await booking_service.get_booking(db, booking_id, user))


@router.put(
    "/bookings/{booking_id}",
    response_model=SuccessResponse[BookingDetail],
    responses={
        400: {"description": "Invalid status transition", "model": ErrorResponse},
        403: {"description": "Users may only cancel", "model": ErrorResponse},
        404: {"description": "Booking not found", "model": ErrorResponse},
    },
    summary="Change booking status or notes",
)
async def update_booking(
    booking_id: UUID,
    payload: BookingUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[BookingDetail]:
    booking = await booking_service.update_booking(db, booking_id, user, payload)
    return SuccessResponse(data=booking, message="Booking updated successfully")


@router.post(
    "/availability/check",
    response_model=SuccessResponse[AvailabilityCheckResponse],
    tags=["Availability"],
    summary="Check a court slot or product quantity for a time window",
)
async def check_availability(
    payload: AvailabilityCheckRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[AvailabilityCheckResponse]:
    return SuccessResponse(data=await booking_service.check_availability(db, payload))
