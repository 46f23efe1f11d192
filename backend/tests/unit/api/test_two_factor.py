"""
Unit Tests for two-factor enrollment API
"""
import pytest
from httpx import AsyncClient

from app.services.two_factor import current_totp

from conftest import TEST_PASSWORD


class TestTwoFactorEndpoints:
    """/api/v1/2fa/*"""

    async def _enroll(self, client: AsyncClient, headers: dict) -> str:
        setup = (await client.post('/api/v1/2fa/generate-secret', headers=headers)).json()
        response = await client.post('/api/v1/2fa/activate', json={'code': current_totp(setup['secret'])}, headers=headers)
        assert response.status_code == 200
        return setup['secret']

    @pytest.mark.asyncio
    async def test_generate_secret(self, client: AsyncClient, auth_headers):
        response = await client.post('/api/v1/2fa/generate-secret', headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data['secret']) == 32
        assert data['otpauth_url'].startswith('otpauth://totp/')
        assert len(data['backup_codes']) == 8

    @pytest.mark.asyncio
    async def test_activate_and_status(self, client: AsyncClient, auth_headers):
        await self._enroll(client, auth_headers)

        response = await client.get('/api/v1/2fa/status/jperez')

        assert response.json() == {'username': 'jperez', 'enabled': True}

    @pytest.mark.asyncio
    async def test_activate_wrong_code(self, client: AsyncClient, auth_headers):
        setup = (await client.post('/api/v1/2fa/generate-secret', headers=auth_headers)).json()
        wrong = f"{(int(current_totp(setup['secret'])) + 500000) % 1000000:06d}"

        response = await client.post('/api/v1/2fa/activate', json={'code': wrong}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_CODE'

    @pytest.mark.asyncio
    async def test_deactivate_requires_password(self, client: AsyncClient, auth_headers):
        await self._enroll(client, auth_headers)

        rejected = await client.post('/api/v1/2fa/deactivate', json={'password': 'wrong-password'}, headers=auth_headers)
        accepted = await client.post('/api/v1/2fa/deactivate', json={'password': TEST_PASSWORD}, headers=auth_headers)

        assert rejected.status_code == 401
        assert accepted.json() == {'username': 'jperez', 'enabled': False}

    @pytest.mark.asyncio
    async def test_recovery_with_authenticator(self, client: AsyncClient, auth_headers):
        secret = await self._enroll(client, auth_headers)

        session = (await client.post('/api/v1/2fa/forgot-password', json={'identifier': 'jperez'})).json()
        verified = await client.post(
            '/api/v1/2fa/verify', json={'session_id': session['session_id'], 'code': current_totp(secret)}
        )

        assert verified.status_code == 200
        assert verified.json()['state'] == 'reset'

    @pytest.mark.asyncio
    async def test_status_unknown_user(self, client: AsyncClient):
        response = await client.get('/api/v1/2fa/status/nadie')

        assert response.status_code == 404
