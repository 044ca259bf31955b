"""
RentalHub Backend — Access Log Middleware
===========================================

What:  One log line per request: method, path, status, duration, request
       id, client IP and (when authenticated) the user id.
How:   Logged on the "rentalhub.access" logger; level follows the status
       class (5xx ERROR, 4xx WARNING, otherwise INFO).

Privacy:
    Bodies, query strings and Authorization/Cookie headers are never logged;
    query strings can carry signed-URL signatures.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from rentalhub.middleware.request_id import request_id_var

logger = logging.getLogger("rentalhub.access")

QUIET_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")
        user_id = getattr(request.state, "user_id", None) or "-"
        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        logger.log(
            level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_id": user_id,
            },
        )
        return response
