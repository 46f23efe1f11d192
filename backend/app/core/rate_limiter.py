"""
Rate Limiting for the Credentials Portal
========================================
Implements rate limiting using slowapi (in-memory storage by default,
any limits storage URI such as redis:// via RATE_LIMIT_STORAGE_URL).

Sensitive endpoints carry their own limits:
- /auth/login: 5 req/min (brute force protection)
- recovery identify / verify: 5 req/min (code and PIN guessing)
- /account/activate: 3 req/min
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import logger


def get_client_identifier(request: Request) -> str:
    """
    Rate limit key.

    Authenticated requests are keyed by username (set on request.state by
    the auth dependency), everything else by client IP.
    """
    username = getattr(request.state, 'username', None)
    if username:
        return f"user:{username}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URL,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Render rate limit errors in the portal error envelope"""
    retry_after = exc.detail.split(" per ")[-1] if exc.detail else "1 minute"

    logger.warning(
        f"[RateLimit] Exceeded for {get_client_identifier(request)}: {exc.detail}",
        extra={"event_type": "rate_limit", "http_path": request.url.path}
    )

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": {
                "code": "RATE_LIMITED",
                "message": "Too many requests. Please slow down.",
                "details": {"limit": str(exc.detail), "window": retry_after},
            },
        },
        headers={"Retry-After": "60"},
    )


def auth_rate_limit():
    """Rate limit for login (5/min)"""
    return limiter.limit("5/minute")


def recovery_rate_limit():
    """Rate limit for recovery identify/verify (5/min)"""
    return limiter.limit("5/minute")


def strict_rate_limit():
    """Very strict rate limit for account activation (3/min)"""
    return limiter.limit("3/minute")
