"""
RentalHub Backend — Shared Response Envelopes
===============================================

What:  The success/error envelopes every endpoint returns, plus pagination
       metadata and the health-check payload.
Who:   Every route module; main.py builds ErrorResponse-shaped bodies.

Envelope:
    {
        "success": true,
        "data": {...} | [...],
        "message": "Booking created" | null,
        "pagination": {"page": 1, "limit": 20, "total": 57,
                       "total_pages": 3, "has_next": true, "has_prev": false} | null
    }

Errors:
    {
        "success": false,
        "error": "BOOKING_CONFLICT",
        "message": "The selected time slot conflicts with an existing booking",
        "details": {"conflicting_bookings": ["..."]},
        "request_id": "a1b2c3d4"
    }
"""

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Generic, List, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, Field

T = TypeVar("T")


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treats naive datetimes as UTC so they compare with timezone-aware columns."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UTCDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class PaginationMeta(BaseModel):
    """
    What:  Page bookkeeping returned next to every list.
    How:   Built by `PaginationMeta.build()`; total_pages is
           ceil(total / limit), so an empty result has 0 pages.
    """
    page: int = Field(description="Current page (1-based)")
    limit: int = Field(description="Items per page")
    total: int = Field(description="Total rows matching the filters")
    total_pages: int = Field(description="ceil(total / limit)")
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success envelope. `data` carries the resource or list."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    pagination: Optional[PaginationMeta] = None


class MessageResponse(BaseModel):
    """Envelope for endpoints that only acknowledge an action (logout, delete)."""
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """
    Documented error format (used in `responses=` for OpenAPI).

    `details` is only populated for client errors; 5xx responses carry a
    generic message and the request id for log correlation.
    """
    success: bool = False
    error: str = Field(description="Machine-readable error code, e.g. BOOKING_CONFLICT")
    message: str = Field(description="Human-readable error description")
    details: Optional[Any] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class FieldError(BaseModel):
    field: str
    message: str


class ValidationErrorResponse(ErrorResponse):
    """422 body produced when FastAPI rejects the request schema."""
    validation_errors: List[FieldError] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """
    What:  GET /health payload.
    status:           healthy | degraded | unhealthy
    database:         connected | disconnected
    payment_gateway:  closed | open | half_open (circuit breaker state)
    """
    status: str
    version: str
    database: str
    payment_gateway: str
    uptime_seconds: float


class StatusResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime
    method: str
