"""
RentalHub Backend — Rental Order & Cart Route Handlers
========================================================

What:  Equipment rental orders (checkout, status changes, deletion) and
       the per-user cart that precedes checkout.
Who:   Cart and checkout pages; owner dashboard for hand-over/return.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.dependencies import Pagination, get_current_user, pagination_params
from rentalhub.models.user import User
from rentalhub.schemas.cart import CartItemCreate, CartItemResponse, CartItemUpdate, CartResponse
from rentalhub.schemas.common import ErrorResponse, MessageResponse, PaginationMeta, SuccessResponse
from rentalhub.schemas.rental import RentalCreate, RentalResponse, RentalUpdate
from rentalhub.services.cart_service import cart_service
from rentalhub.services.rental_service import rental_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Rentals"])


# ── Rental orders ─────────────────────────────────────────────────────────

@router.get(
    "/rentals",
    response_model=SuccessResponse[List[RentalResponse]],
    summary="List rental orders visible to the caller",
)
async def list_rentals(
    response: Response,
    pagination: Pagination = Depends(pagination_params()),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[List[RentalResponse]]:
    items, total = await rental_service.list_rentals(db, user, pagination, status=status_filter)
    response.headers["X-Total-Count"] = str(total)
    return SuccessResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
    )


@router.post(
    "/rentals",
    response_model=SuccessResponse[RentalResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Past start date, no price, or insufficient quantity", "model": ErrorResponse},
        404: {"description": "Product unavailable", "model": ErrorResponse},
    },
    summary="Create a draft rental order",
)
async def create_rental(
    payload: RentalCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[RentalResponse]:
    order = await rental_service.create_rental(db, user, payload)
    return SuccessResponse(data=order, message="Rental order created successfully")


@router.get(
    "/rentals/{rental_id}",
    response_model=SuccessResponse[RentalResponse],
    responses={404: {"description": "Rental not found", "model": ErrorResponse}},
    summary="Rental order detail",
)
async def get_rental(
    rental_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[RentalResponse]:
    return SuccessResponse(data=await rental_service.get_rental(db, rental_id, user))


@router.put(
    "/rentals/{rental_id}",
    response_model=SuccessResponse[RentalResponse],
    responses={
        400: {"description": "Invalid transition or dates", "model": ErrorResponse},
        403: {"description": "Users may only cancel or add notes", "model": ErrorResponse},
        404: {"description": "Rental not found", "model": ErrorResponse},
    },
    summary="Update a rental order",
)
async def update_rental(
    rental_id: UUID,
    payload: RentalUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[RentalResponse]:
    order = await rental_service.update_rental(db, rental_id, user, payload)
    return SuccessResponse(data=order, message="Rental order updated successfully")


@router.delete(
    "/rentals/{rental_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "Only draft or cancelled orders can be deleted", "model": ErrorResponse},
        403: {"description": "Not your order", "model": ErrorResponse},
    },
    summary="Delete a draft or cancelled rental order",
)
async def delete_rental(
    rental_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await rental_service.delete_rental(db, rental_id, user)
    return MessageResponse(message="Rental order deleted successfully")


# ── Cart ──────────────────────────────────────────────────────────────────

@router.get("/cart", response_model=SuccessResponse[CartResponse], tags=["Cart"], summary="Current cart")
async def get_cart(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CartResponse]:
    return SuccessResponse(data=await cart_service.get_cart(db, user))


@router.post(
    "/cart",
    response_model=SuccessResponse[CartItemResponse],
    status_code=status.HTTP_201_CREATED,
    tags=["Cart"],
    summary="Add a product to the cart (merges same product and dates)",
)
async def add_to_cart(
    payload: CartItemCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CartItemResponse]:
    item = await cart_service.add_item(db, user, payload)
    return SuccessResponse(data=item, message="Item added to cart")


@router.delete("/cart", response_model=MessageResponse, tags=["Cart"], summary="Empty the cart")
async def clear_cart(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    removed = await cart_service.clear(db, user)
    return MessageResponse(message=f"Cart cleared ({removed} items removed)")


@router.get(
    "/cart/{item_id}",
    response_model=SuccessResponse[CartItemResponse],
    tags=["Cart"],
    summary="Cart item detail",
)
async def get_cart_item(
    item_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CartItemResponse]:
    return SuccessResponse(data=await cart_service.get_item(db, item_id, user))


@router.put(
    "/cart/{item_id}",
    response_model=SuccessResponse[CartItemResponse],
    tags=["Cart"],
    summary="Change quantity or dates of a cart item",
)
async def update_cart_item(
    item_id: UUID,
    payload: CartItemUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CartItemResponse]:
    item = await cart_service.update_item(db, item_id, user, payload)
    return SuccessResponse(data=item, message="Cart item updated")


@router.delete("/cart/{item_id}", response_model=MessageResponse, tags=["Cart"], summary="Remove a cart item")
async def remove_cart_item(
    item_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await cart_service.remove_item(db, item_id, user)
    return MessageResponse(message="Item removed from cart")
