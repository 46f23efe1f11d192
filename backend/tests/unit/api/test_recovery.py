"""
Unit Tests for the password recovery API
"""
import pytest
from httpx import AsyncClient

from app.core.security import get_password_hash, verify_password

NEW_PASSWORD = 'N3w!Passw0rd2024'


class TestEmailRecovery:
    """/email/forgot-password -> /email/verify -> /email/reset-password"""

    @pytest.mark.asyncio
    async def test_full_flow(self, client: AsyncClient, test_user, fake_email, fake_directory):
        started = await client.post('/api/v1/email/forgot-password', json={'identifier': 'jperez'})
        assert started.status_code == 200
        session = started.json()
        assert session['state'] == 'verify'
        assert session['channel'] == 'email'
        assert session['sent_to'].endswith('@gmail.com')

        code = fake_email.last_code('jperez.personal@gmail.com')
        verified = await client.post(
            '/api/v1/email/verify', json={'session_id': session['session_id'], 'code': code}
        )
        assert verified.status_code == 200
        assert verified.json()['state'] == 'reset'

        reset = await client.post(
            '/api/v1/email/reset-password',
            json={'session_id': session['session_id'], 'new_password': NEW_PASSWORD},
        )
        assert reset.status_code == 200
        data = reset.json()
        assert data['state'] == 'success'
        assert data['directory_synced'] is True
        assert data['redirect_to'] == '/login'
        assert data['redirect_after_seconds'] == 3
        assert fake_directory.passwords['jperez'] == NEW_PASSWORD

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient):
        response = await client.post('/api/v1/email/forgot-password', json={'identifier': 'nadie'})

        assert response.status_code == 404
        assert response.json()['error']['code'] == 'USER_NOT_FOUND'

    @pytest.mark.asyncio
    async def test_reset_before_verify(self, client: AsyncClient, test_user):
        started = (await client.post('/api/v1/email/forgot-password', json={'identifier': 'jperez'})).json()

        response = await client.post(
            '/api/v1/email/reset-password',
            json={'session_id': started['session_id'], 'new_password': NEW_PASSWORD},
        )

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_RECOVERY_STATE'

    @pytest.mark.asyncio
    async def test_wrong_code(self, client: AsyncClient, test_user):
        started = (await client.post('/api/v1/email/forgot-password', json={'identifier': 'jperez'})).json()

        response = await client.post(
            '/api/v1/email/verify', json={'session_id': started['session_id'], 'code': 'abcdef'}
        )

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_CODE'

    @pytest.mark.asyncio
    async def test_session_status_and_back(self, client: AsyncClient, test_user):
        started = (await client.post('/api/v1/email/forgot-password', json={'identifier': 'jperez'})).json()

        status = await client.get(f"/api/v1/email/session/{started['session_id']}")
        assert status.json()['state'] == 'verify'

        back = await client.post('/api/v1/email/back', json={'session_id': started['session_id']})
        assert back.status_code == 200
        assert back.json()['state'] == 'identify'

    @pytest.mark.asyncio
    async def test_quota_exhausted(self, client: AsyncClient, test_user, fake_email):
        fake_email.counter.daily_limit = 0

        response = await client.post('/api/v1/email/forgot-password', json={'identifier': 'jperez'})

        assert response.status_code == 503
        assert response.json()['error']['code'] == 'EMAIL_QUOTA_EXCEEDED'


class TestPinRecovery:
    """/pin/* channel"""

    @pytest.mark.asyncio
    async def test_without_pin(self, client: AsyncClient, test_user):
        response = await client.post('/api/v1/pin/forgot-password', json={'identifier': 'jperez'})

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'PIN_NOT_CONFIGURED'

    @pytest.mark.asyncio
    async def test_full_flow(self, client: AsyncClient, db_session, test_user):
        test_user.pin_hash = get_password_hash('402817')
        await db_session.commit()

        session = (await client.post('/api/v1/pin/forgot-password', json={'identifier': '85010112345'})).json()
        verified = await client.post('/api/v1/pin/verify', json={'session_id': session['session_id'], 'code': '402817'})
        assert verified.json()['state'] == 'reset'

        reset = await client.post(
            '/api/v1/pin/reset-password', json={'session_id': session['session_id'], 'new_password': NEW_PASSWORD}
        )

        assert reset.status_code == 200
        assert verify_password(NEW_PASSWORD, test_user.hashed_password)

    @pytest.mark.asyncio
    async def test_session_from_other_channel(self, client: AsyncClient, db_session, test_user):
        test_user.pin_hash = get_password_hash('402817')
        await db_session.commit()
        email_session = (await client.post('/api/v1/email/forgot-password', json={'identifier': 'jperez'})).json()

        response = await client.post(
            '/api/v1/pin/verify', json={'session_id': email_session['session_id'], 'code': '402817'}
        )

        assert response.status_code == 404


class TestGenericRecoveryRoutes:
    """/recovery/{channel}/..."""

    @pytest.mark.asyncio
    async def test_identify_by_channel(self, client: AsyncClient, test_user):
        response = await client.post('/api/v1/recovery/email/identify', json={'identifier': 'jperez@uniss.edu.cu'})

        assert response.status_code == 200
        session_id = response.json()['session_id']

        status = await client.get(f'/api/v1/recovery/email/status/{session_id}')
        assert status.json()['username'] == 'jperez'

    @pytest.mark.asyncio
    async def test_totp_not_configured(self, client: AsyncClient, test_user):
        response = await client.post('/api/v1/recovery/totp/identify', json={'identifier': 'jperez'})

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'TWO_FACTOR_NOT_CONFIGURED'

    @pytest.mark.asyncio
    async def test_unknown_channel(self, client: AsyncClient):
        response = await client.post('/api/v1/recovery/sms/identify', json={'identifier': 'jperez'})

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'VALIDATION_ERROR'
