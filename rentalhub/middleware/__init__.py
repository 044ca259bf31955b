"""
RentalHub Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    Rate limiting rejects abusive clients before anything else runs; the
    request id is assigned before the access log line is written so the
    two can be correlated. Responses travel back through the same chain
    in reverse.
"""
