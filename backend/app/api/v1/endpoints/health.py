"""
Health Check Endpoints

- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database reachable, tables present)
- /health/deep  - Detailed diagnostics (database, directory, email)
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Dict, Any
import asyncio
import time

from app.core.config import settings
from app.core.exceptions import DirectoryError
from app.core.logging_config import logger
from app.services.directory import DirectoryService, get_directory
from app.services.email_service import EmailService, get_email_service


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and that the users table exists"""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from app.core.database import get_session_local

    start = time.time()
    try:
        async with get_session_local()() as session:
            await session.execute(text("SELECT 1"))
            try:
                await session.execute(text("SELECT COUNT(*) FROM users"))
                tables_ok = True
            except SQLAlchemyError:
                tables_ok = False
    except (SQLAlchemyError, OSError) as e:
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start) * 1000, 2),
        "tables_ready": tables_ok,
    }


async def check_directory(directory: DirectoryService) -> Dict[str, Any]:
    start = time.time()
    try:
        await directory.ping()
    except DirectoryError as e:
        return {"status": "unhealthy", "error": e.message, "url": settings.LDAP_URL}
    return {
        "status": "healthy",
        "latency_ms": round((time.time() - start) * 1000, 2),
        "url": settings.LDAP_URL,
    }


def check_email_config(email_service: EmailService) -> Dict[str, Any]:
    stats = email_service.stats()
    if not email_service.is_configured:
        return {"status": "degraded", **stats, "message": "SMTP not configured - recovery codes cannot be sent"}
    if stats["remaining"] == 0:
        return {"status": "degraded", **stats, "message": "Daily email quota exhausted"}
    return {"status": "healthy", **stats}


@router.get("/live")
async def liveness_check():
    """Liveness probe - the process is up"""
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "app": settings.APP_NAME,
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe - 200 only when the database is usable"""
    db_check = await check_database()
    is_ready = db_check.get("status") == "healthy" and db_check.get("tables_ready", False)

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {"database": db_check},
    }
    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        return JSONResponse(status_code=503, content=response)
    return response


@router.get("/deep")
async def deep_health_check(
    directory: DirectoryService = Depends(get_directory),
    email_service: EmailService = Depends(get_email_service),
):
    """Full diagnostics for monitoring dashboards"""
    start_time = time.time()
    db_check, directory_check = await asyncio.gather(
        check_database(),
        check_directory(directory),
    )
    checks = {
        "database": db_check,
        "directory": directory_check,
        "email": check_email_config(email_service),
    }
    statuses = {c["status"] for c in checks.values()}
    overall = "healthy" if statuses == {"healthy"} else (
        "unhealthy" if db_check["status"] != "healthy" else "degraded"
    )
    return {
        "status": overall,
        "timestamp": datetime.utcnow().isoformat(),
        "duration_ms": round((time.time() - start_time) * 1000, 2),
        "environment": settings.ENVIRONMENT,
        "checks": checks,
    }
