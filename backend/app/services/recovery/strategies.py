"""
Verification strategies for the recovery wizard, one per channel.

A strategy runs twice per wizard run: ``prepare`` when the user enters the
verify step (send a code, or check the factor exists at all) and ``verify``
when the user submits the secret.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    EmailDeliveryError,
    InvalidPinError,
    InvalidVerificationCodeError,
    PinNotConfiguredError,
    TwoFactorNotConfiguredError,
)
from app.models.recovery_session import RecoveryChannel
from app.models.user import User
from app.services import pin_service
from app.services.email_service import EmailService, mask_email
from app.services.two_factor import TwoFactorService
from app.services.verification_codes import issue_code, consume_code, PASSWORD_RESET


class VerificationStrategy(ABC):
    channel: RecoveryChannel

    @abstractmethod
    async def prepare(self, db: AsyncSession, user: User) -> Optional[str]:
        """Make the factor ready. Returns a hint for the client (e.g. masked email)."""

    @abstractmethod
    async def verify(self, db: AsyncSession, user: User, secret: str) -> None:
        """Raise a ValidationError subclass when the secret is wrong"""


class EmailCodeStrategy(VerificationStrategy):
    channel = RecoveryChannel.EMAIL

    def __init__(self, email_service: EmailService):
        self.email_service = email_service

    async def prepare(self, db: AsyncSession, user: User) -> Optional[str]:
        destination = user.recovery_email
        code = await issue_code(db, destination, PASSWORD_RESET)
        sent = await self.email_service.send_verification_code(destination, code, user.username)
        if not sent:
            raise EmailDeliveryError("Could not send the verification code")
        return mask_email(destination)

    async def verify(self, db: AsyncSession, user: User, secret: str) -> None:
        await consume_code(db, user.recovery_email, secret, PASSWORD_RESET)


class PinStrategy(VerificationStrategy):
    channel = RecoveryChannel.PIN

    async def prepare(self, db: AsyncSession, user: User) -> Optional[str]:
        if not user.has_pin:
            raise PinNotConfiguredError(user.username)
        return None

    async def verify(self, db: AsyncSession, user: User, secret: str) -> None:
        if not pin_service.check_pin(user, secret):
            raise InvalidPinError()


class TotpStrategy(VerificationStrategy):
    channel = RecoveryChannel.TOTP

    async def prepare(self, db: AsyncSession, user: User) -> Optional[str]:
        if not user.two_factor_enabled or not user.two_factor_secret:
            raise TwoFactorNotConfiguredError(user.username)
        return None

    async def verify(self, db: AsyncSession, user: User, secret: str) -> None:
        if not TwoFactorService(db).verify(user, secret):
            raise InvalidVerificationCodeError("Incorrect authenticator code")


def build_strategies(email_service: EmailService) -> Dict[RecoveryChannel, VerificationStrategy]:
    return {
        RecoveryChannel.EMAIL: EmailCodeStrategy(email_service),
        RecoveryChannel.PIN: PinStrategy(),
        RecoveryChannel.TOTP: TotpStrategy(),
    }
