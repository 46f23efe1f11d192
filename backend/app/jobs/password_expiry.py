"""
Password Expiry Job - daily alerts for passwords about to expire.

Runs inside the API process as an asyncio task that wakes once a day at
EXPIRY_ALERT_HOUR, and can also be run once from cron:

    credportal-expiry-alerts
"""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, Optional

from app.core.config import settings
from app.core.database import AsyncSessionLocal, close_db
from app.core.logging_config import logger
from app.services.email_service import EmailService, get_email_service
from app.services.password_expiry import send_expiry_alerts


def seconds_until_hour(hour: int, now: Optional[datetime] = None) -> float:
    """Seconds from `now` to the next time the clock reads hour:00"""
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class PasswordExpiryJob:
    """Daily sweep that emails users whose password is about to expire"""

    def __init__(
        self,
        alert_hour: int = None,
        email_service: Optional[EmailService] = None,
    ):
        self.alert_hour = settings.EXPIRY_ALERT_HOUR if alert_hour is None else alert_hour
        self.email_service = email_service or get_email_service()

        self.running = False
        self._task: Optional[asyncio.Task] = None

        self.stats = {
            "runs": 0,
            "total_notified": 0,
            "total_failed": 0,
            "last_run": None,
        }

    async def start(self):
        """Start the daily schedule"""
        if self.running:
            logger.warning("[PasswordExpiry] Job already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[PasswordExpiry] Started - Daily at {self.alert_hour:02d}:00")

    async def stop(self):
        """Stop the daily schedule"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[PasswordExpiry] Stopped")

    async def _loop(self):
        while self.running:
            await asyncio.sleep(seconds_until_hour(self.alert_hour))
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[PasswordExpiry] Error in alert run: {e}", exc_info=True)

    async def run_once(self) -> Dict[str, int]:
        """One alert pass with its own database session"""
        async with AsyncSessionLocal() as db:
            summary = await send_expiry_alerts(db, self.email_service)

        self.stats["runs"] += 1
        self.stats["total_notified"] += summary["notified"]
        self.stats["total_failed"] += summary["failed"]
        self.stats["last_run"] = datetime.utcnow().isoformat()
        logger.info(
            f"[PasswordExpiry] checked={summary['checked']} "
            f"notified={summary['notified']} failed={summary['failed']}"
        )
        return summary


# Singleton instance
password_expiry_job = PasswordExpiryJob()


async def _run_cli() -> Dict[str, int]:
    try:
        return await password_expiry_job.run_once()
    finally:
        await close_db()


def main() -> int:
    """Console entry point: send today's alerts and exit non-zero if any failed"""
    summary = asyncio.run(_run_cli())
    print(f"checked={summary['checked']} notified={summary['notified']} failed={summary['failed']}")
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
