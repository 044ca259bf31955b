"""
RentalHub Backend — FastAPI Application Factory
=================================================

What:  Builds the FastAPI application: middleware, routers, exception
       handlers and lifecycle hooks.
How:   create_app() returns a configured instance; the module-level `app`
       is what uvicorn serves (uvicorn rentalhub.main:app).

Application Layout:
    Middleware:  RateLimit → RequestID → AccessLog → GZip → CORS
    Routers:     health, auth, users, facilities/courts, bookings,
                 products, rentals/cart, reviews, payments, webhooks,
                 uploads/storage, notifications
    Errors:      every RentalHubError → standard envelope with its own
                 status and code; schema errors → 422; anything else → 500

Lifecycle:
    Startup:   logging, configuration check (logged, not fatal), storage dir
    Shutdown:  close the Razorpay HTTP client, dispose the engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from rentalhub import __version__
from rentalhub.config import settings
from rentalhub.database import dispose_engine
from rentalhub.exceptions import (
    CircuitBreakerOpenError,
    PaymentGatewayError,
    RateLimitExceededError,
    RentalHubError,
)
from rentalhub.middleware.logging import RequestLoggingMiddleware
from rentalhub.middleware.rate_limit import RateLimitMiddleware
from rentalhub.middleware.request_id import RequestIDMiddleware, request_id_var
from rentalhub.routes import (
    auth,
    bookings,
    facilities,
    health,
    notifications,
    payments,
    products,
    rentals,
    reviews,
    uploads,
)
from rentalhub.services.payment_gateway import razorpay_client

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure root logging to stdout.

    Format: 2026-01-31T10:00:00 [INFO] rentalhub.services.booking_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our own access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("RentalHub Backend %s starting up...", __version__)

    # A misconfigured server still answers /health, so this only logs.
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())
    logger.info(
        "Razorpay %s", "configured" if razorpay_client.is_configured else "NOT configured"
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("RentalHub Backend shutting down...")
    await razorpay_client.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(code: str, message: str, details=None, **extra) -> Dict:
    body = {
        "success": False,
        "error": code,
        "message": message,
        "details": details,
        "request_id": request_id_var.get("") or None,
    }
    body.update(extra)
    return body


def _retry_after(exc: RentalHubError):
    if isinstance(exc, RateLimitExceededError):
        return exc.retry_after
    if isinstance(exc, CircuitBreakerOpenError):
        return exc.recovery_time
    if isinstance(exc, PaymentGatewayError):
        return exc.retry_after
    return None


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the error envelope.

        RentalHubError (any subclass) → its status_code and code
        RequestValidationError        → 422 VALIDATION_ERROR + validation_errors
        Exception                     → 500 INTERNAL_ERROR

    Server-side failures (5xx) never echo their context to the client; it
    is logged together with the request id instead.
    """

    @app.exception_handler(RentalHubError)
    async def handle_rentalhub_error(request: Request, exc: RentalHubError):
        rid = request_id_var.get("")
        status_code = exc.status_code
        headers = {}
        retry_after = _retry_after(exc)
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        if status_code >= 500 and status_code != 503:
            logger.error(
                "[%s] %s on %s %s: %s | Context: %s",
                rid, exc.code, request.method, request.url.path, exc.message, exc.context,
            )
            message = exc.message
            if exc.code == "DATABASE_ERROR":
                message = "An internal error occurred. Please try again later."
            body = _error_body(exc.code, message)
        else:
            log = logger.warning if status_code >= 500 else logger.info
            log("[%s] %s %d: %s", rid, exc.code, status_code, exc.message)
            body = _error_body(exc.code, exc.message, exc.context or None)

        return JSONResponse(status_code=status_code, content=body, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        field_errors = []
        for err in exc.errors():
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
            field_errors.append({"field": ".".join(loc) or "request", "message": err.get("msg", "")})
        logger.info(
            "[%s] Request validation failed on %s: %s",
            request_id_var.get(""), request.url.path, field_errors,
        )
        return JSONResponse(
            status_code=422,
            content=_error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                validation_errors=field_errors,
            ),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error on %s %s: %s",
            request_id_var.get(""), request.method, request.url.path, str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "INTERNAL_ERROR",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="RentalHub API",
        description=(
            "Sports facility booking and equipment rental backend: courts, "
            "bookings, rentable products, cart, reviews, Razorpay payments and uploads."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → AccessLog → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(auth.users_router)
    app.include_router(facilities.router)
    app.include_router(bookings.router)
    app.include_router(products.router)
    app.include_router(rentals.router)
    app.include_router(reviews.router)
    app.include_router(payments.router)
    app.include_router(payments.webhooks_router)
    app.include_router(uploads.router)
    app.include_router(notifications.router)

    return app


app = create_app()
