"""
Password Sync Job - retries directory writes that failed earlier.

Runs inside the API process as an asyncio task (started from the app
lifespan) and can also be run once from cron:

    credportal-sync
"""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, Optional

from app.core.config import settings
from app.core.database import AsyncSessionLocal, close_db
from app.core.logging_config import logger
from app.services.directory import DirectoryService, get_directory
from app.services.sync_service import SyncService


class PasswordSyncJob:
    """Periodic sweep over users flagged ldap_synced = False"""

    def __init__(
        self,
        interval_minutes: int = None,
        directory: Optional[DirectoryService] = None,
    ):
        self.interval = timedelta(minutes=interval_minutes or settings.SYNC_INTERVAL_MINUTES)
        self.directory = directory or get_directory()

        self.running = False
        self._task: Optional[asyncio.Task] = None

        self.stats = {
            "runs": 0,
            "total_synced": 0,
            "total_failed": 0,
            "last_run": None,
        }

    async def start(self):
        """Start the background sweep"""
        if self.running:
            logger.warning("[PasswordSync] Job already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[PasswordSync] Started - Interval: {self.interval}")

    async def stop(self):
        """Stop the background sweep"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[PasswordSync] Stopped")

    async def _loop(self):
        while self.running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[PasswordSync] Error in sync loop: {e}", exc_info=True)

            await asyncio.sleep(self.interval.total_seconds())

    async def run_once(self) -> Dict[str, int]:
        """One sweep with its own database session"""
        async with AsyncSessionLocal() as db:
            summary = await SyncService(self.directory).sync_existing_users(db)

        self.stats["runs"] += 1
        self.stats["total_synced"] += summary["synced"]
        self.stats["total_failed"] += summary["failed"]
        self.stats["last_run"] = datetime.utcnow().isoformat()
        return summary


# Singleton instance
password_sync_job = PasswordSyncJob()


async def _run_cli() -> Dict[str, int]:
    try:
        return await password_sync_job.run_once()
    finally:
        await close_db()


def main() -> int:
    """Console entry point: run one sweep and exit non-zero if anything failed"""
    summary = asyncio.run(_run_cli())
    print(f"processed={summary['processed']} synced={summary['synced']} failed={summary['failed']}")
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
