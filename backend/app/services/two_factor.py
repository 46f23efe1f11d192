"""
Two-Factor Authentication (TOTP, RFC 6238)
==========================================

Codes are 6 digits, HMAC-SHA1, 30 second period, accepted within
TOTP_VALID_WINDOW periods either side of now (clock drift on phones).

Secrets live in the database, Fernet-encrypted, behind
TwoFactorSecretRepository. Nothing the browser stores is trusted.
"""

import base64
import hashlib
import hmac
import secrets
import struct
import time
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    InvalidVerificationCodeError,
    TwoFactorNotConfiguredError,
    ConflictError,
)
from app.core.logging_config import logger
from app.core.security import encrypt_secret, decrypt_secret
from app.models.user import User

TOTP_DIGITS = 6
TOTP_PERIOD = 30
SECRET_LENGTH = 32  # base32 characters (160 bits)
BACKUP_CODE_COUNT = 8

_BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"


def generate_secret(length: int = SECRET_LENGTH) -> str:
    return "".join(secrets.choice(_BASE32_ALPHABET) for _ in range(length))


def generate_backup_codes(count: int = BACKUP_CODE_COUNT) -> List[str]:
    return [f"{secrets.randbelow(10 ** 8):08d}" for _ in range(count)]


def _decode_secret(secret: str) -> bytes:
    cleaned = secret.replace(" ", "").upper()
    padding = "=" * (-len(cleaned) % 8)
    return base64.b32decode(cleaned + padding)


def totp_at(secret: str, counter: int) -> str:
    """HOTP value for a given time step"""
    digest = hmac.new(_decode_secret(secret), struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return f"{value % (10 ** TOTP_DIGITS):0{TOTP_DIGITS}d}"


def current_totp(secret: str, at: Optional[float] = None) -> str:
    now = time.time() if at is None else at
    return totp_at(secret, int(now // TOTP_PERIOD))


def verify_totp(secret: str, code: str, window: Optional[int] = None, at: Optional[float] = None) -> bool:
    code = (code or "").strip().replace(" ", "")
    if len(code) != TOTP_DIGITS or not code.isdigit():
        return False

    window = settings.TOTP_VALID_WINDOW if window is None else window
    now = time.time() if at is None else at
    step = int(now // TOTP_PERIOD)
    return any(
        hmac.compare_digest(totp_at(secret, step + drift), code)
        for drift in range(-window, window + 1)
    )


def provisioning_uri(secret: str, account: str, issuer: Optional[str] = None) -> str:
    issuer = issuer or settings.TOTP_ISSUER
    label = quote(f"{issuer}:{account}")
    return (
        f"otpauth://totp/{label}?secret={secret}&issuer={quote(issuer)}"
        f"&algorithm=SHA1&digits={TOTP_DIGITS}&period={TOTP_PERIOD}"
    )


class TwoFactorSecretRepository:
    """Persists TOTP secrets on the user record, encrypted at rest"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def get_secret(self, user: User) -> Optional[str]:
        if not user.two_factor_secret:
            return None
        return decrypt_secret(user.two_factor_secret)

    async def store_secret(self, user: User, secret: str) -> None:
        user.two_factor_secret = encrypt_secret(secret)
        await self.db.flush()

    async def clear(self, user: User) -> None:
        user.two_factor_secret = None
        user.two_factor_enabled = False
        await self.db.flush()


class TwoFactorService:
    """Enrollment and verification for authenticator apps"""

    def __init__(self, db: AsyncSession):
        self.repository = TwoFactorSecretRepository(db)
        self.db = db

    async def generate(self, user: User) -> dict:
        """Start enrollment. The secret is stored but inactive until activate()"""
        if user.two_factor_enabled:
            raise ConflictError("Two-factor authentication is already enabled", code="TWO_FACTOR_ACTIVE")

        secret = generate_secret()
        await self.repository.store_secret(user, secret)
        return {
            "secret": secret,
            "otpauth_url": provisioning_uri(secret, user.institutional_email),
            "backup_codes": generate_backup_codes(),
        }

    async def activate(self, user: User, code: str) -> None:
        secret = self.repository.get_secret(user)
        if not secret:
            raise TwoFactorNotConfiguredError(user.username)
        if not verify_totp(secret, code):
            logger.log_auth_event("2fa_activate", False, username=user.username, reason="bad code")
            raise InvalidVerificationCodeError("Incorrect authenticator code")

        user.two_factor_enabled = True
        await self.db.flush()
        logger.log_auth_event("2fa_activate", True, username=user.username)

    async def deactivate(self, user: User) -> None:
        await self.repository.clear(user)
        logger.log_auth_event("2fa_deactivate", True, username=user.username)

    def verify(self, user: User, code: str) -> bool:
        """Check a login/recovery code. Raises when 2FA is not usable."""
        secret = self.repository.get_secret(user) if user.two_factor_enabled else None
        if not secret:
            raise TwoFactorNotConfiguredError(user.username)
        return verify_totp(secret, code)
