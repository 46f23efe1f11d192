from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.profile import DualStatusRequest, DualStatusResponse
from app.services.dual_verification import StudentRegistryClient, get_student_registry, verify_dual_status

router = APIRouter()


@router.post("/dual-status", response_model=DualStatusResponse)
async def dual_status(
    body: DualStatusRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: StudentRegistryClient = Depends(get_student_registry),
):
    """Employee roster + student registry check for one national id"""
    return await verify_dual_status(db, body.national_id, registry)
