"""
RentalHub Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions, each tied to an HTTP status and a
       machine-readable error code.
How:   Services raise these; the handlers registered in main.py turn them
       into the standard error envelope:
           {"success": false, "error": <code>, "message": ..., "details": ...,
            "request_id": ...}
Who:   Raised by services, dependencies and middleware.

Exception Hierarchy:
    RentalHubError (base)                  → 500 INTERNAL_ERROR
    ├── ValidationError                    → 400 VALIDATION_ERROR (or custom code)
    │   └── InvalidStatusTransitionError   → 400 INVALID_STATUS_TRANSITION
    ├── AuthenticationError                → 401 UNAUTHORIZED
    ├── PermissionDeniedError              → 403 FORBIDDEN
    ├── NotFoundError                      → 404 RESOURCE_NOT_FOUND
    ├── ConflictError                      → 409 CONFLICT
    │   └── BookingConflictError           → 409 BOOKING_CONFLICT
    ├── RateLimitExceededError             → 429 RATE_LIMIT_EXCEEDED
    ├── DatabaseError                      → 500 DATABASE_ERROR
    ├── FileStorageError                   → 500 STORAGE_ERROR
    ├── PaymentGatewayError                → 503 PAYMENT_GATEWAY_ERROR
    └── CircuitBreakerOpenError            → 503 SERVICE_UNAVAILABLE
"""

from typing import Any, Dict, Iterable, Optional


class RentalHubError(Exception):
    """
    Base exception for all RentalHub application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Extra info; returned as `details` for 4xx errors, logged only for 5xx
        code:     Machine-readable error code
    """

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.context = context or {}
        self.code = code or self.default_code
        super().__init__(self.message)


class ValidationError(RentalHubError):
    """
    Raised when a request breaks a business rule the client can fix
    (dates in the past, not enough stock, wrong order state...).

    Schema-level problems never get here: FastAPI rejects them with 422
    before the handler runs.
    """

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx, code=code)
        self.field = field


class InvalidStatusTransitionError(ValidationError):
    """Raised when a booking or rental is moved to a status it cannot reach."""

    default_code = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        resource: str,
        current: str,
        requested: str,
        allowed: Iterable[str] = (),
    ):
        allowed = sorted(allowed)
        super().__init__(
            message=f"Cannot change {resource} status from '{current}' to '{requested}'",
            field="status",
            context={"current_status": current, "requested_status": requested, "allowed": allowed},
        )
        self.current = current
        self.requested = requested


class AuthenticationError(RentalHubError):
    """Missing, expired or invalid credentials."""

    status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(RentalHubError):
    """Authenticated, but the role or ownership check failed."""

    status_code = 403
    default_code = "FORBIDDEN"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(RentalHubError):
    """
    Raised when a requested resource does not exist, or exists but is not
    visible to the caller (we do not leak the difference).
    """

    status_code = 404
    default_code = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(RentalHubError):
    """The write would violate a uniqueness or exclusivity rule."""

    status_code = 409
    default_code = "CONFLICT"


class BookingConflictError(ConflictError):
    """The requested slot overlaps a draft or confirmed booking on the same court."""

    default_code = "BOOKING_CONFLICT"

    def __init__(
        self,
        conflicting_ids: Optional[Iterable[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["conflicting_bookings"] = [str(i) for i in (conflicting_ids or [])]
        super().__init__(
            message="The selected time slot conflicts with an existing booking",
            context=ctx,
        )


class RateLimitExceededError(RentalHubError):
    """Client exceeded the per-IP request limit."""

    status_code = 429
    default_code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(RentalHubError):
    """
    Raised when database operations fail unexpectedly.

    The client always receives a generic message; the context (original
    exception type, ids involved) is only logged.
    """

    default_code = "DATABASE_ERROR"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(RentalHubError):
    """Could not read, write or delete an object on the storage volume."""

    default_code = "STORAGE_ERROR"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PaymentGatewayError(RentalHubError):
    """
    Raised when Razorpay fails after all retries or rejects a request.

    HTTP 503 with an optional Retry-After header; the pending payment row
    created for the attempt is rolled back by the caller.
    """

    status_code = 503
    default_code = "PAYMENT_GATEWAY_ERROR"

    def __init__(
        self,
        message: str = "Payment gateway is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(RentalHubError):
    """
    Raised while the payment-gateway circuit breaker is OPEN.

    CLOSED → (threshold failures) → OPEN → (recovery timeout) → HALF_OPEN
    → success: CLOSED / failure: OPEN again.
    """

    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "Payment service is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
