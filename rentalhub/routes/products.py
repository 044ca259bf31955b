"""
RentalHub Backend — Product Route Handlers
============================================

What:  Equipment catalogue: browse/search, detail, and owner CRUD.
Who:   Public catalogue pages and the owner inventory screen.
"""

import logging
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.dependencies import Pagination, get_optional_user, pagination_params, require_roles
from rentalhub.models.user import ROLE_ADMIN, ROLE_OWNER, User
from rentalhub.schemas.common import ErrorResponse, MessageResponse, PaginationMeta, SuccessResponse
from rentalhub.schemas.product import (
    ProductCreate,
    ProductDetail,
    ProductFilters,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from rentalhub.services.product_service import product_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])

_owner_or_admin = require_roles(ROLE_OWNER, ROLE_ADMIN)


@router.get(
    "",
    response_model=ProductListResponse,
    summary="Browse the equipment catalogue",
    description=(
        "Filters on category ('all' disables it), daily price range, location and free text. "
        "sort_by accepts created_at, price_per_day, rating, name or total_reviews; anything "
        "else sorts by created_at."
    ),
)
async def list_products(
    response: Response,
    pagination: Pagination = Depends(pagination_params()),
    category: Optional[str] = Query(default=None, max_length=100),
    min_price: Optional[Decimal] = Query(default=None, ge=0),
    max_price: Optional[Decimal] = Query(default=None, ge=0),
    location: Optional[str] = Query(default=None, max_length=255),
    available: bool = Query(default=True, description="Only active products"),
    search: Optional[str] = Query(default=None, max_length=100),
    sort_by: str = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    db: AsyncSession = Depends(get_db_session),
) -> ProductListResponse:
    items, total, categories = await product_service.list_products(
        db,
        pagination,
        category=category,
        min_price=min_price,
        max_price=max_price,
        location=location,
        available=available,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    response.headers["X-Total-Count"] = str(total)
    return ProductListResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
        filters=ProductFilters(categories=categories),
    )


@router.post(
    "",
    response_model=SuccessResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Not the facility owner", "model": ErrorResponse},
        404: {"description": "Facility not found", "model": ErrorResponse},
    },
    summary="Add a product to a facility's inventory",
)
async def create_product(
    payload: ProductCreate,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[ProductResponse]:
    product = await product_service.create_product(db, user, payload)
    return SuccessResponse(data=product, message="Product created successfully")


@router.get(
    "/{product_id}",
    response_model=SuccessResponse[ProductDetail],
    responses={404: {"description": "Product not found", "model": ErrorResponse}},
    summary="Product detail with recent reviews and availability",
)
async def get_product(
    product_id: UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[ProductDetail]:
    return SuccessResponse(data=await product_service.get_product(db, product_id, user))


@router.put(
    "/{product_id}",
    response_model=SuccessResponse[ProductResponse],
    responses={
        403: {"description": "Not the facility owner", "model": ErrorResponse},
        404: {"description": "Product not found", "model": ErrorResponse},
    },
    summary="Update a product (rating fields are read-only)",
)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[ProductResponse]:
    product = await product_service.update_product(db, product_id, user, payload)
    return SuccessResponse(data=product, message="Product updated successfully")


@router.delete(
    "/{product_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "Product has open rentals", "model": ErrorResponse},
        403: {"description": "Not the facility owner", "model": ErrorResponse},
        404: {"description": "Product not found", "model": ErrorResponse},
    },
    summary="Deactivate a product",
)
async def delete_product(
    product_id: UUID,
    user: User = Depends(_owner_or_admin),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await product_service.delete_product(db, product_id, user)
    return MessageResponse(message="Product deleted successfully")
