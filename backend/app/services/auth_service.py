"""
Login against the directory with a local fallback.

The directory is authoritative. When it cannot be reached, the locally
stored bcrypt hash is accepted instead so the portal (and password
recovery in particular) keeps working during directory outages.
"""

from datetime import datetime
from typing import Dict, Any, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidCredentialsError, DirectoryUnavailableError
from app.core.logging_config import logger
from app.core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
)
from app.models.user import User
from app.services.directory import DirectoryService, DirectoryEntry
from app.services.user_service import get_user_by_username


def institutional_email_for(username: str, mail: str = None) -> str:
    domain = settings.INSTITUTIONAL_EMAIL_DOMAIN.lower()
    if mail and mail.lower().endswith("@" + domain):
        return mail.lower()
    return f"{username.lower()}@{domain}"


def token_claims(user: User) -> Dict[str, Any]:
    return {
        "sub": user.username,
        "employee_id": user.employee_id,
        "title": user.title,
        "display_name": user.display_name,
    }


def issue_tokens(user: User) -> Dict[str, Any]:
    claims = token_claims(user)
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token({"sub": user.username}),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def apply_directory_entry(user: User, entry: DirectoryEntry) -> None:
    user.display_name = entry.display_name or user.display_name
    user.employee_id = entry.employee_id or user.employee_id
    user.title = entry.title or user.title


async def authenticate(
    db: AsyncSession,
    directory: DirectoryService,
    username: str,
    password: str,
) -> Tuple[User, bool]:
    """
    Returns (user, via_directory).

    Raises InvalidCredentialsError for rejected credentials.
    """
    username = username.strip().lower()
    user = await get_user_by_username(db, username)

    try:
        entry = await directory.authenticate(username, password)
    except DirectoryUnavailableError as e:
        logger.warning(f"[Auth] Directory unavailable, using local credentials for {username}: {e.message}")
        if user is None or not user.is_active or not verify_password(password, user.hashed_password or ""):
            logger.log_auth_event("login", False, username=username, reason="local fallback rejected")
            raise InvalidCredentialsError()
        user.last_login = datetime.utcnow()
        await db.commit()
        logger.log_auth_event("login", True, username=username, via="local")
        return user, False

    if entry is None:
        logger.log_auth_event("login", False, username=username, reason="directory rejected")
        raise InvalidCredentialsError()

    if user is None:
        user = User(
            username=entry.username.lower() or username,
            institutional_email=institutional_email_for(username, entry.mail),
            ldap_synced=True,
        )
        db.add(user)
    elif not user.is_active:
        logger.log_auth_event("login", False, username=username, reason="account disabled")
        raise InvalidCredentialsError()

    apply_directory_entry(user, entry)
    # A pending password means the local hash is newer than the directory's
    if user.ldap_synced and not verify_password(password, user.hashed_password or ""):
        user.hashed_password = get_password_hash(password)
    user.last_login = datetime.utcnow()
    await db.commit()

    logger.log_auth_event("login", True, username=username, via="directory")
    return user, True
