from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import PortalError
from app.core.rate_limiter import strict_rate_limit
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.account import (
    AccountActivate,
    ChangePassword,
    BackupEmailUpdate,
    ActivationResult,
    PasswordChangeResult,
)
from app.schemas.auth import UserResponse
from app.services import audit_service
from app.services.account_service import AccountService
from app.services.directory import DirectoryService, get_directory
from app.services.email_service import EmailService, get_email_service

router = APIRouter()


def get_account_service(
    db: AsyncSession = Depends(get_db),
    directory: DirectoryService = Depends(get_directory),
    email_service: EmailService = Depends(get_email_service),
) -> AccountService:
    return AccountService(db, directory, email_service)


def _partial_aware(payload: dict) -> JSONResponse:
    """200 when both stores took the password, 202 when the directory is pending"""
    status_code = 200 if payload["directory_synced"] else 202
    return JSONResponse(status_code=status_code, content=payload)


@router.post("/activate", response_model=ActivationResult, status_code=200, responses={202: {"model": ActivationResult}})
@strict_rate_limit()
async def activate_account(
    request: Request,
    body: AccountActivate,
    service: AccountService = Depends(get_account_service),
):
    """First-time activation (rate limited: 3/min)"""
    try:
        result = await service.activate(body.username, body.employee_id, body.backup_email, body.password)
    except PortalError as e:
        await audit_service.record_event(
            service.db, body.username, audit_service.ACTION_ACTIVATE, False, request, reason=e.code
        )
        raise
    await audit_service.record_event(
        service.db, result["username"], audit_service.ACTION_ACTIVATE, True, request,
        directory_synced=result["directory_synced"],
    )
    message = "Account activated" if result["directory_synced"] else (
        "Account activated; the directory will pick up the password shortly"
    )
    return _partial_aware(ActivationResult(success=True, message=message, **result).model_dump())


@router.post("/change-password", response_model=PasswordChangeResult, responses={202: {"model": PasswordChangeResult}})
async def change_password(
    request: Request,
    body: ChangePassword,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    username = current_user.username
    try:
        directory_synced = await service.change_password(current_user, body.current_password, body.new_password)
    except PortalError as e:
        await audit_service.record_event(
            service.db, username, audit_service.ACTION_CHANGE_PASSWORD, False, request, reason=e.code
        )
        raise
    await audit_service.record_event(
        service.db, username, audit_service.ACTION_CHANGE_PASSWORD, True, request,
        directory_synced=directory_synced,
    )
    message = "Password changed" if directory_synced else (
        "Password changed locally; the directory update is pending"
    )
    return _partial_aware(
        PasswordChangeResult(success=True, directory_synced=directory_synced, message=message).model_dump()
    )


@router.put("/backup-email", response_model=UserResponse)
async def update_backup_email(
    body: BackupEmailUpdate,
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    return await service.update_backup_email(current_user, body.backup_email)
