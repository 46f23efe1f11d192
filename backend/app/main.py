from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import init_db, close_db
from app.core.exceptions import PortalError, error_response
from app.core.logging_config import logger
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.api.v1.router import api_router
from app.jobs.password_expiry import password_expiry_job
from app.jobs.password_sync import password_sync_job
import app.models  # noqa: F401  registers every table on Base.metadata

APP_VERSION = "1.0.0"
PLACEHOLDER_SECRETS = {"", "CHANGE_ME"}


def check_startup_config() -> None:
    """Refuse to boot without signing secrets; warn about optional integrations"""
    missing = [
        name for name, value in (
            ("DATABASE_URL", settings.DATABASE_URL),
            ("SECRET_KEY", settings.SECRET_KEY),
            ("JWT_SECRET_KEY", settings.JWT_SECRET_KEY),
        )
        if (value or "") in PLACEHOLDER_SECRETS
    ]
    if missing:
        logger.critical("Startup aborted, unset configuration: %s", ", ".join(missing))
        raise RuntimeError(f"Missing critical configuration: {', '.join(missing)}")

    if not settings.LDAP_BIND_DN:
        logger.warning("LDAP_BIND_DN is empty: directory lookups and password writes will fail")
    if not (settings.SMTP_USER and settings.SMTP_PASSWORD):
        logger.warning("SMTP credentials are empty: email recovery codes cannot be delivered")
    if not settings.ENCRYPTION_KEY:
        logger.warning("ENCRYPTION_KEY is empty: secrets are encrypted with a key derived from SECRET_KEY")


async def create_tables() -> bool:
    try:
        await init_db()
    except (SQLAlchemyError, OSError) as e:
        logger.error("Could not create portal tables: %s", e)
        return False
    logger.info("Portal tables ready")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "%s %s starting (environment=%s, api=%s)",
        settings.APP_NAME, APP_VERSION, settings.ENVIRONMENT, settings.API_VERSION,
    )
    check_startup_config()

    if settings.DB_AUTO_CREATE and not await create_tables():
        logger.warning("Continuing without a verified schema")

    if settings.SYNC_JOB_ENABLED:
        await password_sync_job.start()
    else:
        logger.info("Directory password sync job disabled")

    if settings.EXPIRY_ALERTS_ENABLED:
        await password_expiry_job.start()
    else:
        logger.info("Password expiry alerts disabled")

    yield

    logger.info("%s shutting down", settings.APP_NAME)
    if settings.SYNC_JOB_ENABLED:
        await password_sync_job.stop()
    if settings.EXPIRY_ALERTS_ENABLED:
        await password_expiry_job.stop()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Self-service portal for institutional accounts: activation, password recovery, devices",
    version=APP_VERSION,
    lifespan=lifespan,
    redirect_slashes=False,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Starlette runs the last added middleware first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    upstream_failure = exc.status_code >= 500
    if upstream_failure:
        logger.error(
            "%s on %s: %s", exc.code, request.url.path, exc.message,
            extra={"error_code": exc.code, "http_path": request.url.path},
        )
    # Directory and SMTP errors may name internal hosts
    body = error_response(exc, include_details=not upstream_failure or settings.DEBUG)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    field_errors = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ())[1:]]
        field_errors.append({
            "field": ".".join(location) or None,
            "message": err.get("msg", "Invalid value"),
        })

    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": {"errors": field_errors},
            },
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": str(exc) if settings.DEBUG else "An error occurred",
                "details": {},
            },
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/", tags=["Root"])
async def root():
    return {"service": settings.APP_NAME, "version": APP_VERSION, "docs": "/docs"}


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.SERVER_HOST, port=settings.SERVER_PORT, reload=settings.DEBUG)
