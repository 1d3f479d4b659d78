"""
Request Middleware

Provides middleware for:
1. Correlation ID - Assigns a unique ID to each request for log tracing
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.shared.core.logging import set_correlation_id, set_tenant_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that assigns a unique correlation ID to each request.

    Features:
    - Generates a unique ID for each request (req-xxxxxxxx)
    - Accepts an incoming X-Request-ID / X-Correlation-ID header (distributed tracing)
    - Adds X-Request-ID to the response headers
    - Clears any tenant left over from a previous request on this context
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming_id = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")

        correlation_id = set_correlation_id(incoming_id)
        set_tenant_id(None)

        response = await call_next(request)

        response.headers["X-Request-ID"] = correlation_id

        return response
