from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import DirectoryError
from app.core.logging_config import logger
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.profile import ProfileResponse
from app.services.directory import DirectoryService, get_directory
from app.services.profile_service import build_profile

router = APIRouter()


@router.get("/me/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    directory: DirectoryService = Depends(get_directory),
):
    """Profile card: directory data, user type and recovery options"""
    groups = []
    try:
        entry = await directory.find_user(current_user.username)
        if entry is not None:
            groups = entry.groups
    except DirectoryError as e:
        # Profile still renders from the local copy
        logger.warning(f"[Profile] Directory groups unavailable for {current_user.username}: {e.message}")

    return await build_profile(db, current_user, groups)
