"""RentalHub Backend — Rental Order Schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from rentalhub.schemas.common import UTCDatetime
from rentalhub.schemas.product import ProductSummary


class RentalItemIn(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)


class RentalCreate(BaseModel):
    start_date: UTCDatetime
    end_date: UTCDatetime
    items: List[RentalItemIn] = Field(min_length=1)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def check_range(self) -> "RentalCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class RentalUpdate(BaseModel):
    """
    Partial update. Status changes go through the transition table in
    RentalService; date changes are re-validated against each other there
    because only one of the two may be sent.
    """
    status: Optional[
        Literal["draft", "confirmed", "active", "returned", "cancelled", "overdue"]
    ] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    start_date: Optional[UTCDatetime] = None
    end_date: Optional[UTCDatetime] = None
    return_condition: Optional[str] = Field(default=None, max_length=1000)
    late_fees: Optional[Decimal] = Field(default=None, ge=0)
    damage_fees: Optional[Decimal] = Field(default=None, ge=0)


class RentalItemResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: float
    total_price: float
    product: Optional[ProductSummary] = None

    model_config = {"from_attributes": True}


class RentalResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    start_date: datetime
    end_date: datetime
    status: str
    total_amount: float
    deposit_amount: float
    payment_id: Optional[uuid.UUID] = None
    return_condition: Optional[str] = None
    late_fees: float = 0
    damage_fees: float = 0
    notes: Optional[str] = None
    items: List[RentalItemResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
