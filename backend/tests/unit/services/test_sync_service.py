"""
Unit Tests for directory password synchronization
"""
import asyncio

import pytest

from app.core.exceptions import PartialSyncError
from app.core.security import decrypt_secret, encrypt_secret, get_password_hash, verify_password
from app.models.user import User
from app.services.sync_service import SyncService

NEW_PASSWORD = "N3w!Passw0rd2024"


class TestSyncPassword:
    """Directory first, local second"""

    @pytest.mark.asyncio
    async def test_both_stores_updated(self, db_session, test_user, fake_directory):
        await SyncService(fake_directory).sync_password(db_session, test_user, NEW_PASSWORD)

        assert fake_directory.passwords["jperez"] == NEW_PASSWORD
        assert verify_password(NEW_PASSWORD, test_user.hashed_password)
        assert test_user.ldap_synced is True
        assert test_user.pending_directory_password is None
        assert test_user.last_password_update is not None

    @pytest.mark.asyncio
    async def test_directory_rejection_keeps_local_hash(self, db_session, test_user, fake_directory):
        fake_directory.reject_passwords = True

        with pytest.raises(PartialSyncError) as exc_info:
            await SyncService(fake_directory).sync_password(db_session, test_user, NEW_PASSWORD)

        assert exc_info.value.details["username"] == "jperez"
        assert verify_password(NEW_PASSWORD, test_user.hashed_password)
        assert test_user.ldap_synced is False
        assert decrypt_secret(test_user.pending_directory_password) == NEW_PASSWORD

    @pytest.mark.asyncio
    async def test_partial_sync_is_committed(self, db_session, test_user, fake_directory):
        """The local write survives a rollback of the surrounding request"""
        fake_directory.available = False

        with pytest.raises(PartialSyncError):
            await SyncService(fake_directory).sync_password(db_session, test_user, NEW_PASSWORD)
        await db_session.rollback()
        await db_session.refresh(test_user)

        assert test_user.ldap_synced is False
        assert verify_password(NEW_PASSWORD, test_user.hashed_password)

    @pytest.mark.asyncio
    async def test_directory_timeout_keeps_local_hash(self, db_session, test_user, fake_directory, monkeypatch):
        """Errors the directory client does not wrap still count as a failed write"""
        async def timed_out(username, password):
            raise asyncio.TimeoutError()

        monkeypatch.setattr(fake_directory, "change_password", timed_out)

        with pytest.raises(PartialSyncError) as exc_info:
            await SyncService(fake_directory).sync_password(db_session, test_user, NEW_PASSWORD)

        assert "TimeoutError" in exc_info.value.details["reason"]
        assert verify_password(NEW_PASSWORD, test_user.hashed_password)
        assert test_user.ldap_synced is False
        assert decrypt_secret(test_user.pending_directory_password) == NEW_PASSWORD


class TestSyncExistingUsers:
    """Background sweep"""

    async def _unsynced(self, db_session, username, password=NEW_PASSWORD, pending=True):
        user = User(
            username=username,
            institutional_email=f"{username}@uniss.edu.cu",
            hashed_password=get_password_hash(password),
            ldap_synced=False,
            pending_directory_password=encrypt_secret(password) if pending else None,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    @pytest.mark.asyncio
    async def test_sweep_pushes_pending_passwords(self, db_session, fake_directory):
        fake_directory.add_user("mlopez", "Old!Passw0rd1")
        user = await self._unsynced(db_session, "mlopez")

        summary = await SyncService(fake_directory).sync_existing_users(db_session)

        assert summary == {"processed": 1, "synced": 1, "failed": 0}
        assert fake_directory.passwords["mlopez"] == NEW_PASSWORD
        assert user.ldap_synced is True
        assert user.pending_directory_password is None

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_sweep(self, db_session, fake_directory):
        fake_directory.add_user("bperez", "Old!Passw0rd1")
        await self._unsynced(db_session, "agarcia")  # not in the directory
        synced = await self._unsynced(db_session, "bperez")
        missing = await self._unsynced(db_session, "cruiz", pending=False)

        summary = await SyncService(fake_directory).sync_existing_users(db_session)

        assert summary == {"processed": 3, "synced": 1, "failed": 2}
        assert synced.ldap_synced is True
        assert missing.ldap_synced is False

    @pytest.mark.asyncio
    async def test_directory_down(self, db_session, fake_directory):
        fake_directory.add_user("mlopez", "Old!Passw0rd1")
        user = await self._unsynced(db_session, "mlopez")
        fake_directory.available = False

        summary = await SyncService(fake_directory).sync_existing_users(db_session)

        assert summary["failed"] == 1
        assert user.ldap_synced is False
        assert user.pending_directory_password is not None

    @pytest.mark.asyncio
    async def test_nothing_pending(self, db_session, test_user, fake_directory):
        summary = await SyncService(fake_directory).sync_existing_users(db_session)

        assert summary == {"processed": 0, "synced": 0, "failed": 0}
