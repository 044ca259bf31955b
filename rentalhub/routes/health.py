"""
RentalHub Backend — Health, Status & Setup Routes
===================================================

What:  Liveness/readiness probe (/health), a trivial API status ping
       (/api/status) and an admin report of which tables exist.
Who:   Docker health checks, load balancers, the admin setup screen.

Status levels:
    healthy:   database reachable, payment circuit closed
    degraded:  database reachable, payment circuit open/half-open
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import inspect, text

from rentalhub import __version__
from rentalhub.database import Base, engine
from rentalhub.dependencies import require_roles
from rentalhub.models.user import ROLE_ADMIN, User
from rentalhub.schemas.common import HealthResponse, StatusResponse, SuccessResponse
from rentalhub.services.payment_gateway import CircuitBreaker, razorpay_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Runs SELECT 1 against the database and reports the payment circuit breaker state.",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    gateway_state = razorpay_client.circuit_breaker.state
    if gateway_state != CircuitBreaker.CLOSED and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        payment_gateway=gateway_state,
        uptime_seconds=round(time.time() - _start_time, 2),
    )


@router.get("/api/status", response_model=StatusResponse, summary="API status ping")
async def api_status(request: Request) -> StatusResponse:
    return StatusResponse(
        message="API is working",
        timestamp=datetime.now(timezone.utc),
        method=request.method,
    )


@router.get(
    "/api/setup/status",
    response_model=SuccessResponse[Dict[str, Any]],
    tags=["Setup"],
    summary="Which expected tables exist (admin only)",
)
async def setup_status(
    user: User = Depends(require_roles(ROLE_ADMIN)),
) -> SuccessResponse[Dict[str, Any]]:
    expected: List[str] = sorted(Base.metadata.tables)
    async with engine.connect() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))

    tables = {name: name in existing for name in expected}
    missing = [name for name, present in tables.items() if not present]
    return SuccessResponse(
        data={"tables": tables, "missing": missing, "ready": not missing},
        message="Database is ready" if not missing else f"{len(missing)} table(s) missing",
    )
