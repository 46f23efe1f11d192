"""
Credentials Portal - HTTP Middleware

RequestLoggingMiddleware tags each request with an id, times it and records
one access line per request. SecurityHeadersMiddleware hardens responses and
keeps credential traffic out of shared caches.
"""

import time
from typing import Callable, FrozenSet

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from app.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    generate_request_id,
)


# Probes and docs are not worth an access line
QUIET_PATHS: FrozenSet[str] = frozenset({
    "/",
    "/health",
    "/api/v1/health",
    "/api/v1/health/ready",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
})

# Bodies on these routes hold passwords, PINs or one-time codes
CREDENTIAL_PATH_MARKERS = (
    "/auth/login",
    "/account/activate",
    "/account/change-password",
    "/pin/save",
    "/reset-password",
    "/recovery/",
    "/verify",
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def is_quiet_path(path: str) -> bool:
    return path in QUIET_PATHS


def carries_credentials(path: str) -> bool:
    return any(marker in path for marker in CREDENTIAL_PATH_MARKERS)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Correlates and times requests.

    The inbound X-Request-ID is reused when present so the campus proxy and
    the portal share one id. Requests slower than ``slow_request_ms`` (usually
    a sluggish directory bind) are flagged separately.
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 2000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        path = request.url.path
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.log_error_with_context(
                exc,
                context=f"{request.method} {path}",
                http_method=request.method,
                http_path=path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        else:
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

            if not is_quiet_path(path):
                logger.log_request(
                    request.method,
                    path,
                    response.status_code,
                    elapsed_ms,
                    client_ip=_client_ip(request),
                    credential_route=carries_credentials(path),
                )
                if elapsed_ms > self.slow_request_ms:
                    logger.warning(
                        "Slow request %s %s (%.0fms)", request.method, path, elapsed_ms,
                        extra={"event_type": "slow_request", "http_path": path, "duration_ms": elapsed_ms},
                    )
            return response
        finally:
            set_request_id("")
            set_user_id("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"

        return response


__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "is_quiet_path",
    "carries_credentials",
    "QUIET_PATHS",
]
