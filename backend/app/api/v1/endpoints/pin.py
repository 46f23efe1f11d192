from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limiter import limiter
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.pin import PinSave, PinCheck, PinRemove, UserHasPinRequest, PinStatus, PinCheckResult
from app.services import pin_service
from app.services.user_service import find_user_by_identifier

router = APIRouter()


@router.post("/save", response_model=PinStatus)
async def save_pin(
    body: PinSave,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create or replace the recovery PIN"""
    await pin_service.save_pin(db, current_user, body.pin, body.password)
    await db.commit()
    return PinStatus(has_pin=True)


@router.post("/remove", response_model=PinStatus)
async def remove_pin(
    body: PinRemove,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await pin_service.remove_pin(db, current_user, body.password)
    await db.commit()
    return PinStatus(has_pin=False)


@router.post("/check", response_model=PinCheckResult)
@limiter.limit("5/minute")
async def check_pin(
    request: Request,
    body: PinCheck,
    current_user: User = Depends(get_current_user),
):
    """Let a signed-in user confirm they remember their PIN"""
    return PinCheckResult(valid=pin_service.check_pin(current_user, body.pin))


@router.get("/status", response_model=PinStatus)
async def pin_status(current_user: User = Depends(get_current_user)):
    return PinStatus(has_pin=current_user.has_pin)


@router.post("/check-user-has-pin", response_model=PinStatus)
@limiter.limit("10/minute")
async def check_user_has_pin(
    request: Request,
    body: UserHasPinRequest,
    db: AsyncSession = Depends(get_db)
):
    """Used by the recovery screen to offer the PIN option. Unknown users report no PIN."""
    user = await find_user_by_identifier(db, body.identifier)
    return PinStatus(has_pin=bool(user and user.has_pin))
