from fastapi import APIRouter, Depends

from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.services.email_service import EmailService, get_email_service

router = APIRouter()


@router.get("/stats")
async def email_stats(
    admin: User = Depends(get_current_admin),
    email_service: EmailService = Depends(get_email_service),
):
    """Today's sending quota usage"""
    return email_service.stats()
