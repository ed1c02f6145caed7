"""
Rate limiting
Per-client request limits enforced with slowapi
"""

from fastapi import FastAPI
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from assessment.core.config import settings


def build_limiter() -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.RATE_LIMIT_REQUESTS}/{settings.RATE_LIMIT_PERIOD} seconds"],
        enabled=settings.RATE_LIMIT_ENABLED,
    )


def add_rate_limiting(app: FastAPI) -> Limiter:
    """Apply the default limit to every route"""
    limiter = build_limiter()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
    return limiter
