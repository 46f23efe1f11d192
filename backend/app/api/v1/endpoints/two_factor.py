from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, UserNotFoundError
from app.core.security import verify_password
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.two_factor import TwoFactorSetup, TwoFactorActivate, TwoFactorDeactivate, TwoFactorStatus
from app.services.two_factor import TwoFactorService
from app.services.user_service import get_user_by_username

router = APIRouter()


@router.post("/generate-secret", response_model=TwoFactorSetup)
async def generate_secret(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Start enrollment: returns the secret, otpauth URL and backup codes"""
    setup = await TwoFactorService(db).generate(current_user)
    await db.commit()
    return setup


@router.post("/activate", response_model=TwoFactorStatus)
async def activate(
    body: TwoFactorActivate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Finish enrollment with a code from the authenticator app"""
    await TwoFactorService(db).activate(current_user, body.code)
    await db.commit()
    return TwoFactorStatus(username=current_user.username, enabled=True)


@router.post("/deactivate", response_model=TwoFactorStatus)
async def deactivate(
    body: TwoFactorDeactivate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not verify_password(body.password, current_user.hashed_password or ""):
        raise AuthenticationError("Current password is incorrect")
    await TwoFactorService(db).deactivate(current_user)
    await db.commit()
    return TwoFactorStatus(username=current_user.username, enabled=False)


@router.get("/status/{username}", response_model=TwoFactorStatus)
async def status(
    username: str,
    db: AsyncSession = Depends(get_db)
):
    """Whether the recovery screen should offer the authenticator option"""
    user = await get_user_by_username(db, username)
    if user is None:
        raise UserNotFoundError(username)
    return TwoFactorStatus(username=user.username, enabled=user.two_factor_enabled)
