"""
Rate limiting configuration and setup.

Uses slowapi to limit request rates per client address.
The manual OI tick endpoint carries the tighter MANUAL_TICK_RATE_LIMIT
since each call fans out one Redis read per open position.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from adaptive_exit.core.config import settings

MANUAL_TICK_RATE_LIMIT = "10/minute"

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_default])


async def rate_limit_exceeded_handler(
    _request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Return a 429 JSON response in the shared error format.

    Args:
        _request: The incoming HTTP request.
        exc: The rate limit exceeded exception.
    """
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded", "detail": str(exc.detail)},
    )
