"""RentalHub Backend — Cart Schemas."""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from rentalhub.schemas.product import ProductSummary


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    start_date: date
    end_date: date
    quantity: int = Field(default=1, gt=0)

    @model_validator(mode="after")
    def check_range(self) -> "CartItemCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CartItemUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    quantity: Optional[int] = Field(default=None, gt=0)


class CartItemResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    start_date: date
    end_date: date
    quantity: int
    duration_days: int
    unit_price: float
    item_total: float
    item_deposit: float
    product: Optional[ProductSummary] = None
    created_at: datetime


class CartSummary(BaseModel):
    total_items: int
    subtotal: float
    deposit: float
    total: float
    unique_products: int


class CartResponse(BaseModel):
    items: List[CartItemResponse] = Field(default_factory=list)
    summary: CartSummary
