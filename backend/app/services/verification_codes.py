"""
Email verification codes.

One active code per (email, purpose): issuing a new code deletes the old one.
Codes are stored as keyed digests and consumed on first successful use.
"""

from datetime import datetime, timedelta

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidVerificationCodeError
from app.core.security import generate_numeric_code, hash_code, verify_code
from app.models.verification_code import VerificationCode

PASSWORD_RESET = "password_reset"


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def issue_code(db: AsyncSession, email: str, purpose: str = PASSWORD_RESET) -> str:
    """Create a fresh code and return it in clear (for delivery only)"""
    email = normalize_email(email)
    await db.execute(
        delete(VerificationCode).where(
            VerificationCode.email == email,
            VerificationCode.purpose == purpose,
        )
    )

    code = generate_numeric_code(6)
    db.add(VerificationCode(
        email=email,
        purpose=purpose,
        code_hash=hash_code(code),
        expires_at=datetime.utcnow() + timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES),
    ))
    await db.flush()
    return code


async def consume_code(db: AsyncSession, email: str, code: str, purpose: str = PASSWORD_RESET) -> None:
    """Check a code and mark it used. Raises InvalidVerificationCodeError."""
    email = normalize_email(email)
    result = await db.execute(
        select(VerificationCode).where(
            VerificationCode.email == email,
            VerificationCode.purpose == purpose,
            VerificationCode.consumed_at.is_(None),
        )
    )
    record = result.scalars().first()

    if record is None:
        raise InvalidVerificationCodeError("No verification code was requested for this address")
    if not record.is_usable():
        raise InvalidVerificationCodeError("Verification code has expired")
    if not verify_code(code.strip(), record.code_hash):
        raise InvalidVerificationCodeError("Incorrect verification code")

    record.consumed_at = datetime.utcnow()
    await db.flush()
