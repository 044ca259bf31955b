"""
RentalHub Backend — Payment & Webhook Route Handlers
======================================================

What:  Razorpay checkout (create-order, verify), payment history,
       refunds, and the Razorpay webhook receiver.
Who:   Checkout page (Razorpay widget), account payment history, admin
       refunds; Razorpay servers for /api/webhooks/razorpay.

The webhook route reads the raw body itself: the signature is computed
over the exact bytes Razorpay sent, so the body must not be re-serialised.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from rentalhub.database import get_db_session
from rentalhub.dependencies import Pagination, get_current_user, pagination_params
from rentalhub.models.user import User
from rentalhub.schemas.common import ErrorResponse, PaginationMeta, SuccessResponse, ensure_utc
from rentalhub.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentListResponse,
    PaymentResponse,
    RefundRequest,
    VerifyPaymentRequest,
)
from rentalhub.services.payment_service import payment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])
webhooks_router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])

_gateway_errors = {
    503: {"description": "Payment gateway unavailable (see Retry-After)", "model": ErrorResponse},
}


@router.post(
    "/create-order",
    response_model=SuccessResponse[CreateOrderResponse],
    responses={
        400: {"description": "Order not payable or amount mismatch", "model": ErrorResponse},
        404: {"description": "Booking or rental not found", "model": ErrorResponse},
        **_gateway_errors,
    },
    summary="Create a Razorpay order for a draft booking or rental",
)
async def create_order(
    payload: CreateOrderRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[CreateOrderResponse]:
    order = await payment_service.create_order(db, user, payload)
    return SuccessResponse(data=order, message="Payment order created")


@router.post(
    "/verify",
    response_model=SuccessResponse[PaymentResponse],
    responses={
        400: {"description": "Signature mismatch or already verified", "model": ErrorResponse},
        404: {"description": "Payment not found", "model": ErrorResponse},
    },
    summary="Verify the checkout signature and confirm the order",
)
async def verify_payment(
    payload: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[PaymentResponse]:
    payment = await payment_service.verify(db, user, payload)
    return SuccessResponse(data=payment, message="Payment verified successfully")


@router.get(
    "",
    response_model=PaymentListResponse,
    summary="Payment history with totals",
    description="Admins see every payment and may filter by user_id; everyone else sees their own.",
)
async def list_payments(
    response: Response,
    pagination: Pagination = Depends(pagination_params()),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    provider: Optional[str] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    order_type: Optional[str] = Query(default=None),
    user_id: Optional[UUID] = Query(default=None, description="Admin only"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> PaymentListResponse:
    items, total, stats = await payment_service.list_payments(
        db,
        user,
        pagination,
        status=status_filter,
        provider=provider,
        start_date=ensure_utc(start_date),
        end_date=ensure_utc(end_date),
        order_type=order_type,
        user_id=user_id,
    )
    response.headers["X-Total-Count"] = str(total)
    return PaymentListResponse(
        data=items,
        pagination=PaginationMeta.build(pagination.page, pagination.limit, total),
        stats=stats,
    )


@router.post(
    "/refund",
    response_model=SuccessResponse[PaymentResponse],
    responses={
        400: {"description": "Not refundable", "model": ErrorResponse},
        403: {"description": "Not your payment", "model": ErrorResponse},
        404: {"description": "Payment not found", "model": ErrorResponse},
        **_gateway_errors,
    },
    summary="Refund a completed payment (full or partial)",
)
async def refund_payment(
    payload: RefundRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[PaymentResponse]:
    refund = await payment_service.refund(db, user, payload)
    return SuccessResponse(data=refund, message="Refund processed successfully")


@webhooks_router.post(
    "/razorpay",
    response_model=SuccessResponse[Dict[str, Any]],
    responses={
        400: {"description": "Missing signature or malformed body", "model": ErrorResponse},
        401: {"description": "Invalid signature", "model": ErrorResponse},
    },
    summary="Razorpay webhook receiver",
)
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse[Dict[str, Any]]:
    body = await request.body()
    result = await payment_service.handle_webhook(db, body, x_razorpay_signature)
    return SuccessResponse(data=result, message="Webhook processed")
