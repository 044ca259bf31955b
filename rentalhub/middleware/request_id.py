"""
RentalHub Backend — Request ID Middleware
===========================================

What:  Gives every request a correlation id, echoed in the X-Request-ID
       response header and in every error envelope.
How:   Honours an incoming X-Request-ID header (so the frontend can tag
       its own calls), otherwise generates a short random id. The id is
       kept in a ContextVar so exception handlers and log lines can read it
       without having the request object at hand.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get("X-Request-ID", "").strip()
        rid = incoming[:MAX_CLIENT_ID_LENGTH] if incoming else str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
