from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.logging_config import set_user_id
from app.core.security import decode_token, security
from app.models.user import User
from app.services.user_service import get_user_by_username


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    username = payload.get("sub")
    if not username:
        raise AuthenticationError("Invalid token payload")

    user = await get_user_by_username(db, username)
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    # Picked up by the rate limiter key and the log formatter
    request.state.username = user.username
    set_user_id(user.username)
    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Require portal administrator"""
    if not current_user.is_admin:
        raise AuthorizationError("Administrator access required")
    return current_user
