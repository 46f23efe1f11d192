from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.jobs.password_expiry import password_expiry_job
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin, get_current_user
from app.services.email_service import EmailService, get_email_service
from app.services.password_expiry import days_until_expiry, expiry_report, send_expiry_alerts

router = APIRouter()


@router.get("/me")
async def my_password_expiry(user: User = Depends(get_current_user)):
    """Days left before the caller's password expires"""
    if user.last_password_update is None:
        return {"username": user.username, "days_left": None}
    return {
        "username": user.username,
        "days_left": days_until_expiry(user.last_password_update),
    }


@router.get("/report")
async def password_expiry_report(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Users grouped by days left: 4-7, 2-3, 1 and expired"""
    return await expiry_report(db)


@router.post("/run")
async def run_expiry_alerts(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Send today's expiry alerts now"""
    logger.info(f"[PasswordExpiry] Manual run requested by {admin.username}")
    summary = await send_expiry_alerts(db, email_service)
    return {**summary, "job_running": password_expiry_job.running}
