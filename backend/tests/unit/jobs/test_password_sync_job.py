"""
Unit Tests for the background password sync job
"""
import pytest

from app.core.security import encrypt_secret, get_password_hash
from app.jobs.password_sync import PasswordSyncJob
from app.models.user import User


class TestPasswordSyncJob:

    @pytest.mark.asyncio
    async def test_run_once_updates_stats(self, db_session, fake_directory):
        fake_directory.add_user('mlopez', 'Old!Passw0rd1')
        db_session.add(User(
            username='mlopez',
            institutional_email='mlopez@uniss.edu.cu',
            hashed_password=get_password_hash('N3w!Passw0rd2024'),
            ldap_synced=False,
            pending_directory_password=encrypt_secret('N3w!Passw0rd2024'),
        ))
        await db_session.commit()
        job = PasswordSyncJob(interval_minutes=1, directory=fake_directory)

        summary = await job.run_once()

        assert summary == {'processed': 1, 'synced': 1, 'failed': 0}
        assert job.stats['runs'] == 1
        assert job.stats['total_synced'] == 1
        assert job.stats['last_run'] is not None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, db_session, fake_directory):
        job = PasswordSyncJob(interval_minutes=60, directory=fake_directory)

        await job.start()
        assert job.running is True

        await job.stop()
        assert job.running is False
