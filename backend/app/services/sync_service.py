"""
Password Synchronization Service
================================

Keeps the directory and the local credential store in step.

Write order is directory first, local second. When the directory write
fails the local hash is still updated so the user is never locked out of
the portal; the record is flagged ``ldap_synced = False`` and the new
password is kept Fernet-encrypted until the background sweep manages to
push it to the directory.
"""

from datetime import datetime
from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DirectoryError, PartialSyncError
from app.core.logging_config import logger
from app.core.security import get_password_hash, encrypt_secret, decrypt_secret
from app.models.user import User
from app.services.directory import DirectoryService


class SyncService:
    """Directory-first password writes plus the retry sweep"""

    def __init__(self, directory: DirectoryService):
        self.directory = directory

    async def sync_password(self, db: AsyncSession, user: User, new_password: str) -> None:
        """
        Change a user's password in both stores.

        Any failure of the directory call counts as a failed directory write:
        the local hash is still stored and the record flagged for the sweep.

        Raises:
            PartialSyncError: the local hash was stored but the directory
                write failed; the sweep will retry it.
        """
        try:
            await self.directory.change_password(user.username, new_password)
        except DirectoryError as e:
            reason = e.message
        except Exception as e:
            logger.log_error_with_context(e, context="sync_password", sync_username=user.username)
            reason = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
        else:
            reason = None

        user.hashed_password = get_password_hash(new_password)
        user.last_password_update = datetime.utcnow()
        user.expiry_alert_days = None
        user.ldap_synced = reason is None
        user.pending_directory_password = None if reason is None else encrypt_secret(new_password)
        await db.commit()

        logger.log_sync_event(user.username, synced=reason is None, reason=reason)
        if reason is not None:
            raise PartialSyncError(user.username, reason=reason)

    async def sync_existing_users(self, db: AsyncSession) -> Dict[str, int]:
        """
        Retry every unsynced record once.

        Failures are logged and counted, never raised, so one bad account
        cannot stall the rest of the sweep.
        """
        result = await db.execute(
            select(User).where(User.ldap_synced.is_(False)).order_by(User.username)
        )
        users = result.scalars().all()

        summary = {"processed": 0, "synced": 0, "failed": 0}

        for user in users:
            summary["processed"] += 1

            if not user.pending_directory_password:
                logger.warning(
                    f"[Sync] {user.username} is unsynced but has no pending password; skipping",
                    extra={"event_type": "directory_sync", "sync_username": user.username}
                )
                summary["failed"] += 1
                continue

            try:
                password = decrypt_secret(user.pending_directory_password)
                await self.directory.change_password(user.username, password)
            except (DirectoryError, ValueError) as e:
                logger.log_sync_event(user.username, synced=False, reason=str(e), sweep=True)
                summary["failed"] += 1
                continue
            except Exception as e:
                logger.log_error_with_context(e, context="sync_existing_users", sync_username=user.username)
                summary["failed"] += 1
                continue

            user.ldap_synced = True
            user.pending_directory_password = None
            await db.commit()

            logger.log_sync_event(user.username, synced=True, sweep=True)
            summary["synced"] += 1

        logger.info(
            f"[Sync] Sweep finished: {summary['synced']}/{summary['processed']} synced",
            extra={"event_type": "directory_sync_sweep", **summary}
        )
        return summary
