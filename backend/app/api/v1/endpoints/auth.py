from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, PortalError
from app.core.logging_config import logger, set_user_id
from app.core.rate_limiter import auth_rate_limit
from app.core.security import decode_token
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.auth import UserLogin, Token, LoginResponse, UserResponse, RefreshTokenRequest
from app.services import audit_service, auth_service
from app.services.directory import DirectoryService, get_directory
from app.services.user_service import get_user_by_username

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
    directory: DirectoryService = Depends(get_directory),
):
    """Login with directory credentials (rate limited: 5/min)"""
    try:
        user, _ = await auth_service.authenticate(db, directory, credentials.username, credentials.password)
    except PortalError as e:
        await audit_service.record_event(
            db, credentials.username, audit_service.ACTION_AUTHENTICATION, False, request, reason=e.code
        )
        raise
    set_user_id(user.username)
    await audit_service.record_event(db, user.username, audit_service.ACTION_AUTHENTICATION, True, request)

    return {
        **auth_service.issue_tokens(user),
        "user": UserResponse.model_validate(user),
    }


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user info"""
    return current_user


@router.post("/refresh", response_model=Token)
async def refresh_token(
    token_request: RefreshTokenRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Refresh access token using refresh token"""
    client_ip = request.client.host if request.client else "unknown"

    payload = decode_token(token_request.refresh_token)
    if payload.get("type") != "refresh":
        logger.log_auth_event("token_refresh", False, reason="Invalid token type", client_ip=client_ip)
        raise AuthenticationError("Invalid token type - expected refresh token")

    user = await get_user_by_username(db, payload.get("sub") or "")
    if not user or not user.is_active:
        logger.log_auth_event("token_refresh", False, reason="Unknown or inactive user", client_ip=client_ip)
        raise AuthenticationError("User not found or inactive")

    logger.log_auth_event("token_refresh", True, username=user.username, client_ip=client_ip)
    return auth_service.issue_tokens(user)
