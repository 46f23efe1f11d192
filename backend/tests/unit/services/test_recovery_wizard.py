"""
Unit Tests for the password recovery wizard
"""
from datetime import datetime, timedelta

import pytest

from app.core.exceptions import (
    EmailDeliveryError,
    InvalidPinError,
    InvalidVerificationCodeError,
    PasswordPolicyError,
    PinNotConfiguredError,
    RecoverySessionNotFoundError,
    TwoFactorNotConfiguredError,
    UserNotFoundError,
    WizardStateError,
)
from app.core.config import settings
from app.core.security import get_password_hash, verify_password
from app.models.recovery_session import RecoveryChannel, RecoveryState
from app.services.recovery import (
    EmailCodeStrategy,
    PinStrategy,
    RecoveryWizard,
    TotpStrategy,
    build_strategies,
)
from app.services.sync_service import SyncService
from app.services.two_factor import TwoFactorService, current_totp

NEW_PASSWORD = "N3w!Passw0rd2024"


@pytest.fixture
def email_wizard(db_session, fake_directory, fake_email):
    return RecoveryWizard(db_session, EmailCodeStrategy(fake_email), SyncService(fake_directory), fake_email)


@pytest.fixture
def pin_wizard(db_session, fake_directory, fake_email):
    return RecoveryWizard(db_session, PinStrategy(), SyncService(fake_directory), fake_email)


class TestIdentify:
    """identify -> verify"""

    @pytest.mark.asyncio
    async def test_sends_code_to_backup_email(self, email_wizard, test_user, fake_email):
        result = await email_wizard.identify("jperez")

        assert result.session.state == RecoveryState.VERIFY
        assert result.session.channel == RecoveryChannel.EMAIL
        assert result.sent_to == "j" + "*" * 14 + "@gmail.com"
        assert len(fake_email.last_code("jperez.personal@gmail.com")) == 6

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", ["JPEREZ", "jperez@uniss.edu.cu", "jperez.personal@gmail.com", "85010112345"])
    async def test_identifier_forms(self, email_wizard, test_user, identifier):
        result = await email_wizard.identify(identifier)

        assert result.session.username == "jperez"

    @pytest.mark.asyncio
    async def test_unknown_user_creates_no_session(self, email_wizard, db_session):
        with pytest.raises(UserNotFoundError):
            await email_wizard.identify("nadie")

    @pytest.mark.asyncio
    async def test_undeliverable_code(self, db_session, test_user, fake_directory, fake_email):
        fake_email.deliver = False
        wizard = RecoveryWizard(db_session, EmailCodeStrategy(fake_email), SyncService(fake_directory))

        with pytest.raises(EmailDeliveryError):
            await wizard.identify("jperez")

    @pytest.mark.asyncio
    async def test_pin_not_configured_stops_at_identify(self, pin_wizard, test_user):
        with pytest.raises(PinNotConfiguredError):
            await pin_wizard.identify("jperez")

    @pytest.mark.asyncio
    async def test_totp_not_configured(self, db_session, test_user, fake_directory):
        wizard = RecoveryWizard(db_session, TotpStrategy(), SyncService(fake_directory))

        with pytest.raises(TwoFactorNotConfiguredError):
            await wizard.identify("jperez")


class TestVerifyAndReset:
    """verify -> reset -> success"""

    @pytest.mark.asyncio
    async def test_email_happy_path(self, email_wizard, test_user, fake_directory, fake_email):
        started = await email_wizard.identify("jperez")
        code = fake_email.last_code("jperez.personal@gmail.com")

        verified = await email_wizard.verify(started.session.id, code)
        assert verified.session.state == RecoveryState.RESET

        done = await email_wizard.reset(started.session.id, NEW_PASSWORD)

        assert done.session.state == RecoveryState.SUCCESS
        assert done.directory_synced is True
        assert fake_directory.passwords["jperez"] == NEW_PASSWORD
        assert verify_password(NEW_PASSWORD, test_user.hashed_password)
        assert "Your password was changed" in fake_email.subjects()

    @pytest.mark.asyncio
    async def test_wrong_code_stays_in_verify(self, email_wizard, test_user, fake_email):
        started = await email_wizard.identify("jperez")
        code = fake_email.last_code("jperez.personal@gmail.com")
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(InvalidVerificationCodeError):
            await email_wizard.verify(started.session.id, wrong)

        status = await email_wizard.status(started.session.id)
        assert status.session.state == RecoveryState.VERIFY

    @pytest.mark.asyncio
    async def test_reset_without_verify_refused(self, email_wizard, test_user, fake_directory):
        started = await email_wizard.identify("jperez")

        with pytest.raises(WizardStateError):
            await email_wizard.reset(started.session.id, NEW_PASSWORD)

        assert fake_directory.change_calls == []

    @pytest.mark.asyncio
    async def test_weak_password_keeps_reset_state(self, pin_wizard, db_session, test_user):
        test_user.pin_hash = get_password_hash("402817")
        await db_session.commit()
        started = await pin_wizard.identify("jperez")
        await pin_wizard.verify(started.session.id, "402817")

        with pytest.raises(PasswordPolicyError):
            await pin_wizard.reset(started.session.id, "weak")

        status = await pin_wizard.status(started.session.id)
        assert status.session.state == RecoveryState.RESET

    @pytest.mark.asyncio
    async def test_wrong_pin(self, pin_wizard, db_session, test_user):
        test_user.pin_hash = get_password_hash("402817")
        await db_session.commit()
        started = await pin_wizard.identify("jperez")

        with pytest.raises(InvalidPinError):
            await pin_wizard.verify(started.session.id, "402818")

    @pytest.mark.asyncio
    async def test_partial_sync_still_succeeds(self, pin_wizard, db_session, test_user, fake_directory):
        test_user.pin_hash = get_password_hash("402817")
        await db_session.commit()
        started = await pin_wizard.identify("jperez")
        await pin_wizard.verify(started.session.id, "402817")
        fake_directory.reject_passwords = True

        done = await pin_wizard.reset(started.session.id, NEW_PASSWORD)

        assert done.session.state == RecoveryState.SUCCESS
        assert done.directory_synced is False
        assert test_user.ldap_synced is False

    @pytest.mark.asyncio
    async def test_totp_channel(self, db_session, test_user, fake_directory):
        service = TwoFactorService(db_session)
        setup = await service.generate(test_user)
        await service.activate(test_user, current_totp(setup["secret"]))
        await db_session.commit()
        wizard = RecoveryWizard(db_session, TotpStrategy(), SyncService(fake_directory))

        started = await wizard.identify("jperez")
        verified = await wizard.verify(started.session.id, current_totp(setup["secret"]))

        assert verified.session.state == RecoveryState.RESET


class TestSessionRules:
    """Back navigation, expiry and channel binding"""

    @pytest.mark.asyncio
    async def test_back_from_reset_requires_new_verification(self, email_wizard, test_user, fake_email):
        started = await email_wizard.identify("jperez")
        await email_wizard.verify(started.session.id, fake_email.last_code("jperez.personal@gmail.com"))

        back = await email_wizard.back(started.session.id)

        assert back.session.state == RecoveryState.VERIFY
        assert back.session.verified_at is None
        assert back.sent_to is not None
        with pytest.raises(WizardStateError):
            await email_wizard.reset(started.session.id, NEW_PASSWORD)

    @pytest.mark.asyncio
    async def test_back_from_verify(self, email_wizard, test_user):
        started = await email_wizard.identify("jperez")

        back = await email_wizard.back(started.session.id)

        assert back.session.state == RecoveryState.IDENTIFY
        with pytest.raises(WizardStateError):
            await email_wizard.back(started.session.id)

    @pytest.mark.asyncio
    async def test_completed_session_cannot_go_back(self, pin_wizard, db_session, test_user):
        test_user.pin_hash = get_password_hash("402817")
        await db_session.commit()
        started = await pin_wizard.identify("jperez")
        await pin_wizard.verify(started.session.id, "402817")
        await pin_wizard.reset(started.session.id, NEW_PASSWORD)

        with pytest.raises(WizardStateError):
            await pin_wizard.back(started.session.id)

    @pytest.mark.asyncio
    async def test_expired_session(self, email_wizard, db_session, test_user):
        started = await email_wizard.identify("jperez")
        started.session.expires_at = datetime.utcnow() - timedelta(seconds=1)
        await db_session.commit()

        with pytest.raises(RecoverySessionNotFoundError):
            await email_wizard.status(started.session.id)

    @pytest.mark.asyncio
    async def test_session_bound_to_channel(self, email_wizard, pin_wizard, test_user):
        started = await email_wizard.identify("jperez")

        with pytest.raises(RecoverySessionNotFoundError):
            await pin_wizard.status(started.session.id)

    @pytest.mark.asyncio
    async def test_unknown_session(self, email_wizard):
        with pytest.raises(RecoverySessionNotFoundError):
            await email_wizard.verify("does-not-exist", "123456")

    @pytest.mark.asyncio
    async def test_failed_attempts_counted(self, pin_wizard, db_session, test_user):
        test_user.pin_hash = get_password_hash("402817")
        await db_session.commit()
        started = await pin_wizard.identify("jperez")

        with pytest.raises(InvalidPinError) as exc_info:
            await pin_wizard.verify(started.session.id, "111222")

        assert exc_info.value.details["attempts_remaining"] == settings.RECOVERY_MAX_VERIFY_ATTEMPTS - 1
        assert started.session.failed_attempts == 1

    @pytest.mark.asyncio
    async def test_guessing_closes_session(self, pin_wizard, db_session, test_user, monkeypatch):
        monkeypatch.setattr(settings, "RECOVERY_MAX_VERIFY_ATTEMPTS", 3)
        test_user.pin_hash = get_password_hash("402817")
        await db_session.commit()
        started = await pin_wizard.identify("jperez")

        for guess in ("100200", "300400", "500600"):
            with pytest.raises(InvalidPinError):
                await pin_wizard.verify(started.session.id, guess)

        # Even the right PIN is refused once the session is closed
        with pytest.raises(RecoverySessionNotFoundError):
            await pin_wizard.verify(started.session.id, "402817")


class TestBuildStrategies:

    def test_one_strategy_per_channel(self, fake_email):
        strategies = build_strategies(fake_email)

        assert set(strategies) == set(RecoveryChannel)
        assert all(s.channel == channel for channel, s in strategies.items())
