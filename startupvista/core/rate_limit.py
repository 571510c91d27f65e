"""
Rate Limiting Configuration for StartupVista API.

Uses slowapi. Only the credential endpoints are limited, to slow down
password guessing and token minting.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from startupvista.core.config import get_settings

logger = logging.getLogger(__name__)


def get_client_identifier(request: Request) -> str:
    """Rate limit key: original client IP behind proxies, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{get_remote_address(request)}"


_settings = get_settings()

limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri="memory://",
    strategy="fixed-window",
    enabled=_settings.rate_limit_enabled,
)

# Authentication endpoints (prevent brute force)
RATE_AUTH = _settings.rate_limit_auth


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return the standard error body with retry information."""
    limit_value = str(exc.detail) if hasattr(exc, "detail") else "Rate limit exceeded"

    logger.warning(
        "Rate limit exceeded: %s on %s %s",
        get_client_identifier(request),
        request.method,
        request.url.path,
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please slow down.",
            "details": [{"limit": limit_value, "retry_after": 60}],
            "request_id": request.headers.get("X-Request-Id"),
        },
        headers={"Retry-After": "60"},
    )


def limit_auth(func):
    """Decorator for authentication endpoints."""
    return limiter.limit(RATE_AUTH)(func)
