"""
Password Recovery Wizard
========================

One state machine for every recovery channel:

    identify -> verify -> reset -> success

Each step is a single request. Forward moves only happen on success;
``back`` is the only way to step backwards (verify -> identify,
reset -> verify). ``reset`` is refused unless the same session passed
``verify``, so a password can never be changed without the factor check.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    EmailDeliveryError,
    InvalidPinError,
    InvalidVerificationCodeError,
    PartialSyncError,
    PortalError,
    RecoverySessionNotFoundError,
    UserNotFoundError,
    WizardStateError,
)
from app.core.logging_config import logger
from app.core.security import generate_session_token
from app.models.recovery_session import RecoverySession, RecoveryState
from app.models.user import User
from app.services.email_service import EmailService
from app.services.password_policy import validate_password
from app.services.recovery.strategies import VerificationStrategy
from app.services.sync_service import SyncService
from app.services.user_service import find_user_by_identifier, get_user_by_username

_BACK = {
    RecoveryState.VERIFY: RecoveryState.IDENTIFY,
    RecoveryState.RESET: RecoveryState.VERIFY,
}


@dataclass
class StepResult:
    session: RecoverySession
    sent_to: Optional[str] = None
    message: Optional[str] = None
    directory_synced: Optional[bool] = None


class RecoveryWizard:
    """Drives one recovery channel through the shared state machine"""

    def __init__(
        self,
        db: AsyncSession,
        strategy: VerificationStrategy,
        sync_service: SyncService,
        email_service: Optional[EmailService] = None,
    ):
        self.db = db
        self.strategy = strategy
        self.sync_service = sync_service
        self.email_service = email_service

    @property
    def channel(self):
        return self.strategy.channel

    # ------------------------------------------------------------------
    # Session helpers
    # ------------------------------------------------------------------

    async def _load(self, session_id: str) -> RecoverySession:
        result = await self.db.execute(
            select(RecoverySession).where(RecoverySession.id == session_id)
        )
        session = result.scalar_one_or_none()
        if session is None or session.channel != self.channel or session.is_expired():
            raise RecoverySessionNotFoundError(session_id)
        return session

    async def _user(self, session: RecoverySession) -> User:
        user = await get_user_by_username(self.db, session.username)
        if user is None:
            raise UserNotFoundError(session.username)
        return user

    def _expect(self, session: RecoverySession, state: RecoveryState, step: str) -> None:
        if session.state != state:
            raise WizardStateError(session.state.value, step)

    async def _record_failed_attempt(self, session: RecoverySession, error: PortalError) -> None:
        """Count a wrong secret; the last allowed miss closes the session"""
        session.failed_attempts = (session.failed_attempts or 0) + 1
        remaining = max(settings.RECOVERY_MAX_VERIFY_ATTEMPTS - session.failed_attempts, 0)
        if remaining == 0:
            session.expires_at = datetime.utcnow()
        await self.db.commit()
        error.details["attempts_remaining"] = remaining

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def identify(self, identifier: str) -> StepResult:
        """Resolve the account and prepare the factor. No session on failure."""
        user = await find_user_by_identifier(self.db, identifier)
        if user is None:
            logger.log_auth_event(
                f"recovery_{self.channel.value}_identify", False, reason="unknown identifier"
            )
            raise UserNotFoundError(identifier)

        sent_to = await self.strategy.prepare(self.db, user)

        session = RecoverySession(
            id=generate_session_token(),
            channel=self.channel,
            state=RecoveryState.VERIFY,
            username=user.username,
            expires_at=datetime.utcnow() + timedelta(minutes=settings.RECOVERY_SESSION_TTL_MINUTES),
        )
        self.db.add(session)
        await self.db.commit()

        logger.log_auth_event(f"recovery_{self.channel.value}_identify", True, username=user.username)
        return StepResult(session=session, sent_to=sent_to)

    async def verify(self, session_id: str, secret: str) -> StepResult:
        session = await self._load(session_id)
        self._expect(session, RecoveryState.VERIFY, "verify")
        user = await self._user(session)

        try:
            await self.strategy.verify(self.db, user, secret)
        except (InvalidPinError, InvalidVerificationCodeError) as e:
            await self._record_failed_attempt(session, e)
            logger.log_auth_event(
                f"recovery_{self.channel.value}_verify", False, username=user.username,
                reason=str(e), attempts_remaining=e.details["attempts_remaining"],
            )
            raise
        except Exception as e:
            logger.log_auth_event(
                f"recovery_{self.channel.value}_verify", False, username=user.username, reason=str(e)
            )
            raise

        session.state = RecoveryState.RESET
        session.verified_at = datetime.utcnow()
        await self.db.commit()

        logger.log_auth_event(f"recovery_{self.channel.value}_verify", True, username=user.username)
        return StepResult(session=session)

    async def reset(self, session_id: str, new_password: str) -> StepResult:
        session = await self._load(session_id)
        self._expect(session, RecoveryState.RESET, "reset")
        if session.verified_at is None:
            raise WizardStateError(session.state.value, "reset")

        user = await self._user(session)
        validate_password(new_password, user.username)

        directory_synced = True
        try:
            await self.sync_service.sync_password(self.db, user, new_password)
        except PartialSyncError:
            directory_synced = False

        session.state = RecoveryState.SUCCESS
        session.completed_at = datetime.utcnow()
        await self.db.commit()

        logger.log_auth_event(
            f"recovery_{self.channel.value}_reset", True,
            username=user.username, directory_synced=directory_synced,
        )
        await self._notify(user, directory_synced)

        message = "Password updated" if directory_synced else (
            "Password updated; some services will accept it once the directory catches up"
        )
        return StepResult(session=session, message=message, directory_synced=directory_synced)

    async def back(self, session_id: str) -> StepResult:
        session = await self._load(session_id)
        previous = _BACK.get(session.state)
        if previous is None:
            raise WizardStateError(session.state.value, "back")

        sent_to = None
        if previous == RecoveryState.VERIFY:
            # Re-entering verify needs a fresh factor check (and a fresh email code)
            session.verified_at = None
            sent_to = await self.strategy.prepare(self.db, await self._user(session))

        session.state = previous
        await self.db.commit()
        return StepResult(session=session, sent_to=sent_to)

    async def status(self, session_id: str) -> StepResult:
        return StepResult(session=await self._load(session_id))

    async def _notify(self, user: User, directory_synced: bool) -> None:
        if self.email_service is None:
            return
        try:
            await self.email_service.send_password_changed(user.recovery_email, user.username, directory_synced)
        except EmailDeliveryError as e:
            logger.warning(f"[Recovery] Password changed notice not sent to {user.username}: {e.message}")
