"""RentalHub Backend — Review Schemas."""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from rentalhub.schemas.common import SuccessResponse


class ReviewCreate(BaseModel):
    product_id: uuid.UUID
    rating: int = Field(ge=1, le=5)
    title: Optional[str] = Field(default=None, max_length=200)
    comment: Optional[str] = Field(default=None, max_length=2000)
    rental_order_id: Optional[uuid.UUID] = None


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    title: Optional[str] = Field(default=None, max_length=200)
    comment: Optional[str] = Field(default=None, max_length=2000)


class ReviewResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    user_id: uuid.UUID
    rental_order_id: Optional[uuid.UUID] = None
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    user_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReviewStats(BaseModel):
    total_reviews: int
    average_rating: float
    # Keys "1".."5"; JSON object keys are strings.
    rating_distribution: Dict[str, int]


class ReviewListResponse(SuccessResponse[List[ReviewResponse]]):
    stats: Optional[ReviewStats] = None
