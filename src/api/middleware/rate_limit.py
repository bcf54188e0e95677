"""Per-client request throttling for the HTTP API."""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from src.domains.fraud.rate_limiter import RateLimiter, api_rate_limiter

logger = structlog.get_logger()

# Liveness and readiness checks are never throttled
EXEMPT_PATHS = frozenset({"/health", "/ready"})


class ApiRateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests with 429 once a client address exceeds its window."""

    def __init__(self, app: ASGIApp, limiter: RateLimiter = api_rate_limiter) -> None:
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        if not self.limiter.is_allowed(client):
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limited",
                    "message": "Too many requests",
                    "retry_after_seconds": self.limiter.window_seconds,
                    "request_id": getattr(request.state, "request_id", "unknown"),
                },
            )
        return await call_next(request)
