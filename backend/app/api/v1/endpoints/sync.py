from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.jobs.password_sync import password_sync_job
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.schemas.account import SyncSummary
from app.services.directory import DirectoryService, get_directory
from app.services.sync_service import SyncService

router = APIRouter()


@router.post("/run", response_model=SyncSummary)
async def run_sync(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    directory: DirectoryService = Depends(get_directory),
):
    """Retry every pending directory password now"""
    logger.info(f"[Sync] Manual sweep requested by {admin.username}")
    summary = await SyncService(directory).sync_existing_users(db)
    return SyncSummary(**summary, message="Sweep finished")


@router.get("/status")
async def sync_status(
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    pending = await db.execute(select(func.count(User.id)).where(User.ldap_synced.is_(False)))
    return {
        "pending_users": pending.scalar() or 0,
        "job_running": password_sync_job.running,
        **password_sync_job.stats,
    }
