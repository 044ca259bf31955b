"""
RentalHub Backend — Payment Schemas
=====================================

What:  Bodies and responses for create-order / verify / refund / list.

Amounts:
    API amounts are rupees. Only the checkout payload (`CreateOrderResponse`)
    exposes paise, because that is what the Razorpay checkout widget expects.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from rentalhub.schemas.common import SuccessResponse


class CreateOrderRequest(BaseModel):
    booking_id: Optional[uuid.UUID] = None
    rental_order_id: Optional[uuid.UUID] = None
    amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        description="Optional client-side total in rupees; must equal the server amount",
    )
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class CreateOrderResponse(BaseModel):
    payment_id: uuid.UUID
    razorpay_order_id: str
    amount: int = Field(description="Amount in paise")
    currency: str
    key_id: str
    order_type: str
    order_details: Dict[str, Any]


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)


class RefundRequest(BaseModel):
    payment_id: uuid.UUID
    amount: Optional[Decimal] = Field(default=None, gt=0)
    reason: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def strip_reason(self) -> "RefundRequest":
        if self.reason is not None:
            self.reason = self.reason.strip() or None
        return self


class PaymentResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    amount: float
    currency: str
    provider: str
    provider_order_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    status: str
    order_type: Optional[str] = None
    booking_id: Optional[uuid.UUID] = None
    rental_order_id: Optional[uuid.UUID] = None
    original_payment_id: Optional[uuid.UUID] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="details")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class PaymentStats(BaseModel):
    total_amount: float
    status_counts: Dict[str, int]


class PaymentListResponse(SuccessResponse[List[PaymentResponse]]):
    stats: Optional[PaymentStats] = None
