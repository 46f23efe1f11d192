"""
Recovery PIN management.

The PIN is a 6-digit secret the user sets while signed in and later uses to
reset a forgotten password. Only its bcrypt hash is stored.
"""

import re
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidPinError, PinNotConfiguredError, AuthenticationError
from app.core.logging_config import logger
from app.core.security import get_password_hash, verify_password
from app.models.user import User

_PIN_FORMAT = re.compile(r"^\d{6}$")
_SAME_DIGIT = re.compile(r"^(\d)\1{5}$")
_REPEATED_PAIR = re.compile(r"^(\d{2})\1{2}$")
_ASCENDING = "0123456789"
_DESCENDING = "9876543210"


def pin_weakness(pin: str) -> Optional[str]:
    """Describe why a PIN is rejected, or None when it is acceptable"""
    if not _PIN_FORMAT.match(pin):
        return "PIN must be exactly 6 digits"
    if _SAME_DIGIT.match(pin):
        return "PIN cannot be the same digit repeated"
    if pin in _ASCENDING or pin in _DESCENDING or pin in ("567890", "098765"):
        return "PIN cannot be a consecutive sequence"
    if _REPEATED_PAIR.match(pin):
        return "PIN cannot be a repeated pattern"
    return None


def _require_password(user: User, password: str) -> None:
    if not verify_password(password, user.hashed_password or ""):
        raise AuthenticationError("Current password is incorrect")


async def save_pin(db: AsyncSession, user: User, pin: str, password: str) -> None:
    _require_password(user, password)
    problem = pin_weakness(pin)
    if problem:
        raise InvalidPinError(problem)

    replacing = user.has_pin
    user.pin_hash = get_password_hash(pin)
    await db.flush()
    logger.log_auth_event("pin_updated" if replacing else "pin_created", True, username=user.username)


async def remove_pin(db: AsyncSession, user: User, password: str) -> None:
    _require_password(user, password)
    if not user.has_pin:
        raise PinNotConfiguredError(user.username)

    user.pin_hash = None
    await db.flush()
    logger.log_auth_event("pin_removed", True, username=user.username)


def check_pin(user: User, pin: str) -> bool:
    """True when the PIN matches; raises when the user never set one"""
    if not user.has_pin:
        raise PinNotConfiguredError(user.username)
    if not _PIN_FORMAT.match(pin):
        return False
    return verify_password(pin, user.pin_hash)
