"""
Password recovery endpoints.

Every channel exposes the same wizard. ``build_recovery_router`` produces
the channel-specific routes kept for existing clients
(``/email/forgot-password``, ``/pin/verify``, ``/2fa/reset-password``...)
and ``router`` serves the generic ``/recovery/{channel}/...`` form.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limiter import recovery_rate_limit
from app.models.recovery_session import RecoveryChannel
from app.schemas.recovery import (
    IdentifyRequest,
    VerifyRequest,
    ResetRequest,
    SessionRequest,
    RecoveryStatus,
    ResetResult,
)
from app.services import audit_service
from app.services.directory import DirectoryService, get_directory
from app.services.email_service import EmailService, get_email_service
from app.services.recovery import RecoveryWizard, StepResult, build_strategies
from app.services.sync_service import SyncService


def _wizard(
    channel: RecoveryChannel,
    db: AsyncSession,
    directory: DirectoryService,
    email_service: EmailService,
) -> RecoveryWizard:
    strategy = build_strategies(email_service)[channel]
    return RecoveryWizard(db, strategy, SyncService(directory), email_service)


def wizard_for(channel: RecoveryChannel):
    """Dependency bound to one channel"""
    async def dependency(
        db: AsyncSession = Depends(get_db),
        directory: DirectoryService = Depends(get_directory),
        email_service: EmailService = Depends(get_email_service),
    ) -> RecoveryWizard:
        return _wizard(channel, db, directory, email_service)
    return dependency


async def wizard_from_path(
    channel: RecoveryChannel,
    db: AsyncSession = Depends(get_db),
    directory: DirectoryService = Depends(get_directory),
    email_service: EmailService = Depends(get_email_service),
) -> RecoveryWizard:
    """Dependency reading the channel from the URL"""
    return _wizard(channel, db, directory, email_service)


def _status(result: StepResult) -> RecoveryStatus:
    session = result.session
    return RecoveryStatus(
        session_id=session.id,
        channel=session.channel.value,
        state=session.state.value,
        username=session.username,
        expires_at=session.expires_at,
        sent_to=result.sent_to,
        message=result.message,
    )


def _reset_result(result: StepResult) -> ResetResult:
    return ResetResult(
        **_status(result).model_dump(),
        directory_synced=bool(result.directory_synced),
        redirect_to=settings.RECOVERY_REDIRECT_PATH,
        redirect_after_seconds=settings.RECOVERY_REDIRECT_DELAY_SECONDS,
    )


def _rate_limited(fn, name: str):
    # slowapi keys limits by function name; each channel needs its own counter
    fn.__name__ = name
    fn.__qualname__ = name
    return recovery_rate_limit()(fn)


def _add_routes(router: APIRouter, wizard_dependency, paths: dict, name: str) -> None:
    """Register identify / verify / reset / back / status on a router"""

    async def identify(
        request: Request,
        body: IdentifyRequest,
        wizard: RecoveryWizard = Depends(wizard_dependency),
    ):
        """Find the account and send/prepare the verification factor (5/min)"""
        return _status(await wizard.identify(body.identifier))

    async def verify(
        request: Request,
        body: VerifyRequest,
        wizard: RecoveryWizard = Depends(wizard_dependency),
    ):
        """Check the code / PIN / authenticator value (5/min)"""
        return _status(await wizard.verify(body.session_id, body.code))

    router.post(paths["identify"], response_model=RecoveryStatus)(_rate_limited(identify, f"{name}_identify"))
    router.post(paths["verify"], response_model=RecoveryStatus)(_rate_limited(verify, f"{name}_verify"))

    @router.post(paths["reset"], response_model=ResetResult)
    async def reset(
        request: Request,
        body: ResetRequest,
        wizard: RecoveryWizard = Depends(wizard_dependency),
    ):
        """Set the new password; only after a successful verify"""
        result = await wizard.reset(body.session_id, body.new_password)
        await audit_service.record_event(
            wizard.db, result.session.username, audit_service.ACTION_RECOVERY_RESET, True, request,
            channel=result.session.channel.value, directory_synced=bool(result.directory_synced),
        )
        return _reset_result(result)

    @router.post(paths["back"], response_model=RecoveryStatus)
    async def back(
        body: SessionRequest,
        wizard: RecoveryWizard = Depends(wizard_dependency),
    ):
        return _status(await wizard.back(body.session_id))

    @router.get(paths["status"], response_model=RecoveryStatus)
    async def session_status(
        session_id: str,
        wizard: RecoveryWizard = Depends(wizard_dependency),
    ):
        return _status(await wizard.status(session_id))


CHANNEL_PATHS = {
    "identify": "/forgot-password",
    "verify": "/verify",
    "reset": "/reset-password",
    "back": "/back",
    "status": "/session/{session_id}",
}


def build_recovery_router(channel: RecoveryChannel) -> APIRouter:
    channel_router = APIRouter()
    _add_routes(channel_router, wizard_for(channel), CHANNEL_PATHS, channel.value)
    return channel_router


router = APIRouter()
_add_routes(
    router,
    wizard_from_path,
    {
        "identify": "/{channel}/identify",
        "verify": "/{channel}/verify",
        "reset": "/{channel}/reset",
        "back": "/{channel}/back",
        "status": "/{channel}/status/{session_id}",
    },
    "generic",
)
