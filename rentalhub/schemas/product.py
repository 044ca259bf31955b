"""
RentalHub Backend — Product Schemas
=====================================

What:  Catalogue create/update bodies and product responses.

Pricing:
    The API takes prices as a nested object {"hour", "day", "week", "month"};
    ProductService flattens it onto the price_per_* columns and the
    response re-nests it. `day` is the only mandatory tier.

Read-only fields:
    ProductUpdate ignores id, created_at, rating and total_reviews
    (extra="ignore"); rating is owned by the review aggregate.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, HttpUrl, model_validator

from rentalhub.schemas.common import SuccessResponse


class PricingIn(BaseModel):
    hour: Optional[Decimal] = Field(default=None, gt=0)
    day: Decimal = Field(gt=0)
    week: Optional[Decimal] = Field(default=None, gt=0)
    month: Optional[Decimal] = Field(default=None, gt=0)


class PricingUpdate(BaseModel):
    hour: Optional[Decimal] = Field(default=None, gt=0)
    day: Optional[Decimal] = Field(default=None, gt=0)
    week: Optional[Decimal] = Field(default=None, gt=0)
    month: Optional[Decimal] = Field(default=None, gt=0)


class ProductCreate(BaseModel):
    facility_id: uuid.UUID
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    pricing: PricingIn
    deposit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    quantity: int = Field(default=1, gt=0)
    minimum_rental_days: int = Field(default=1, ge=1)
    maximum_rental_days: int = Field(default=365, ge=1)
    images: List[HttpUrl] = Field(default_factory=list)
    specifications: Optional[Dict[str, Any]] = None
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True

    @model_validator(mode="after")
    def check_rental_days(self) -> "ProductCreate":
        if self.maximum_rental_days < self.minimum_rental_days:
            raise ValueError("maximum_rental_days must be >= minimum_rental_days")
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    pricing: Optional[PricingUpdate] = None
    deposit_amount: Optional[Decimal] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)
    minimum_rental_days: Optional[int] = Field(default=None, ge=1)
    maximum_rental_days: Optional[int] = Field(default=None, ge=1)
    images: Optional[List[HttpUrl]] = None
    specifications: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None

    model_config = {"extra": "ignore"}


class PricingOut(BaseModel):
    hour: Optional[float] = None
    day: Optional[float] = None
    week: Optional[float] = None
    month: Optional[float] = None


class ProductResponse(BaseModel):
    id: uuid.UUID
    facility_id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    pricing: PricingOut
    deposit_amount: float
    quantity: int
    available_quantity: int
    minimum_rental_days: int
    maximum_rental_days: int
    images: List[str] = Field(default_factory=list)
    specifications: Optional[dict] = None
    tags: List[str] = Field(default_factory=list)
    rating: float
    total_reviews: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductAvailability(BaseModel):
    is_currently_available: bool
    active_rentals: int
    next_available_date: Optional[datetime] = None


class ProductReviewItem(BaseModel):
    id: uuid.UUID
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    user_name: Optional[str] = None
    created_at: datetime


class ProductDetail(ProductResponse):
    reviews: List[ProductReviewItem] = Field(default_factory=list)
    availability: Optional[ProductAvailability] = None


class ProductFilters(BaseModel):
    categories: List[str] = Field(default_factory=list)


class ProductListResponse(SuccessResponse[List[ProductResponse]]):
    filters: ProductFilters = Field(default_factory=ProductFilters)


class ProductSummary(BaseModel):
    id: uuid.UUID
    name: str
    images: List[str] = Field(default_factory=list)
    price_per_day: float
    deposit_amount: float
    available_quantity: int

    model_config = {"from_attributes": True}
