from __future__ import annotations

from deepsexa.config import settings
from deepsexa.services.rate_limiter import RateLimiter


def build_rate_limiter() -> RateLimiter:
    return RateLimiter(
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
    )
