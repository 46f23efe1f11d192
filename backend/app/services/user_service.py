"""
Local user lookups shared by auth, recovery, PIN and 2FA flows.
"""

from typing import Optional

from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UserNotFoundError
from app.models.user import User


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(func.lower(User.username) == username.strip().lower())
    )
    return result.scalar_one_or_none()


async def find_user_by_identifier(db: AsyncSession, identifier: str) -> Optional[User]:
    """
    Resolve a username, national id, or email address to a local user.

    Emails match either the institutional or the backup address.
    """
    value = identifier.strip()
    if not value:
        return None

    if "@" in value:
        email = value.lower()
        condition = or_(
            func.lower(User.institutional_email) == email,
            func.lower(User.backup_email) == email,
        )
    elif value.isdigit():
        condition = User.employee_id == value
    else:
        condition = func.lower(User.username) == value.lower()

    result = await db.execute(select(User).where(condition, User.is_active.is_(True)))
    return result.scalars().first()


async def require_user(db: AsyncSession, identifier: str) -> User:
    user = await find_user_by_identifier(db, identifier)
    if user is None:
        raise UserNotFoundError(identifier)
    return user
