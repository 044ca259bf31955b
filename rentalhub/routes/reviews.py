"""
RentalHub Backend — Review Route Handlers
===========================================

What:  Product reviews. Listing is public; writing needs an account.
Who:   Product detail page and the "review your rental" prompt.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.dependencies import Pagination, get_current_user, pagination_params
from rentalhub.models.user import User
from rentalhub.schemas.common import ErrorResponse, MessageResponse, PaginationMeta, SuccessResponse
from rentalhub.schemas.review import ReviewCreate, ReviewListResponse, ReviewResponse, ReviewUpdate
from rentalhub.services.review_service import review_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.get(
    "",
    response_model=ReviewListResponse,
    summary="List reviews",
    description="Newest first. When product_id is given the response also carries rating stats.",
)
async def list_reviews(
    response: Response,
    pagination: Pagination = Depends(pagination_params()),
    product_id: Optional[UUID] = Query(default=None),
    user_id: Optional[UUID] = Query(default=None),
    rating: Optional[int] = Query(default=None, ge=1, le=5),
    has_comment: Optional[bool] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> ReviewListResponse:
    items, total, stats = await review_service.list_reviews(
        db,
        pagination,
        product_id=product_id,
        user_id=user_id,
        rating=rating,
        has_comment=has_comment,
    )
    response.headers["X-Total-Count"] = str(total)
    return ReviewListResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
        stats=stats,
    )


@router.post(
    "",
    response_model=SuccessResponse[ReviewResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Duplicate review or rental not returned", "model": ErrorResponse},
        404: {"description": "Product or rental not found", "model": ErrorResponse},
    },
    summary="Review a product",
)
async def create_review(
    payload: ReviewCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[ReviewResponse]:
    review = await review_service.create_review(db, user, payload)
    return SuccessResponse(data=review, message="Review created successfully")


@router.get(
    "/{review_id}",
    response_model=SuccessResponse[ReviewResponse],
    responses={404: {"description": "Review not found", "model": ErrorResponse}},
    summary="Review detail",
)
async def get_review(
    review_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[ReviewResponse]:
    return SuccessResponse(data=await review_service.get_review(db, review_id))


@router.put(
    "/{review_id}",
    response_model=SuccessResponse[ReviewResponse],
    responses={
        400: {"description": "Edit window (24h) has passed", "model": ErrorResponse},
        404: {"description": "Review not found", "model": ErrorResponse},
    },
    summary="Edit your review",
)
async def update_review(
    review_id: UUID,
    payload: ReviewUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[ReviewResponse]:
    review = await review_service.update_review(db, review_id, user, payload)
    return SuccessResponse(data=review, message="Review updated successfully")


@router.delete(
    "/{review_id}",
    response_model=MessageResponse,
    responses={
        403: {"description": "Not the author", "model": ErrorResponse},
        404: {"description": "Review not found", "model": ErrorResponse},
    },
    summary="Delete a review",
)
async def delete_review(
    review_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await review_service.delete_review(db, review_id, user)
    return MessageResponse(message="Review deleted successfully")
