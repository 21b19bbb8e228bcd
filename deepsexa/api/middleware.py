from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from deepsexa.services import logger as log_service
from deepsexa.services.rate_limiter import RateLimiter

EXEMPT_PATHS = {"/api/health"}


def client_identity(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Admission gate in front of every billed /api/ route."""

    def __init__(self, app, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/") or path in EXEMPT_PATHS:
            return await call_next(request)

        identity = client_identity(request)
        if not self.limiter.admit(identity):
            retry_after = self.limiter.retry_after(identity)
            log_service.log_event(
                event_type="rate_limited",
                message="Request rejected by admission control",
                identity=identity,
                path=path,
                retry_after=retry_after,
            )
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests"},
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
