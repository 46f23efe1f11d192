"""
Password expiry tracking.

Days left are counted from the last password change the portal recorded,
against the directory's maximum password age. Alerts go out at 7, 3 and 1
days before expiry and once more on the day the password expires.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import EmailDeliveryError
from app.core.logging_config import logger
from app.models.user import User
from app.services.email_service import EmailService, mask_email

ALERT_DAYS = (7, 3, 1, 0)

ALERT_TYPES = {
    7: "first_notice",
    3: "urgent",
    1: "final",
    0: "expired",
}

REPORT_RANGES = (
    ("4-7", 4, 7),
    ("2-3", 2, 3),
    ("1", 1, 1),
    ("expired", 0, 0),
)


def days_until_expiry(
    last_change: datetime,
    max_age_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """Whole days left, rounded up; 0 once the password has expired"""
    max_age = timedelta(days=max_age_days if max_age_days is not None else settings.PASSWORD_MAX_AGE_DAYS)
    now = now or datetime.utcnow()
    remaining = (last_change + max_age - now) / timedelta(days=1)
    return max(math.ceil(remaining), 0)


@dataclass
class ExpiringPassword:
    user: User
    days_left: int
    expires_at: datetime

    @property
    def alert_type(self) -> Optional[str]:
        return ALERT_TYPES.get(self.days_left)


async def find_expiring_passwords(
    db: AsyncSession,
    within_days: int = max(ALERT_DAYS),
    now: Optional[datetime] = None,
) -> List[ExpiringPassword]:
    """Active users whose password expires within `within_days`, soonest first"""
    now = now or datetime.utcnow()
    max_age = settings.PASSWORD_MAX_AGE_DAYS
    result = await db.execute(
        select(User).where(User.is_active.is_(True), User.last_password_update.isnot(None))
    )

    expiring = []
    for user in result.scalars().all():
        days_left = days_until_expiry(user.last_password_update, max_age, now)
        if days_left <= within_days:
            expiring.append(ExpiringPassword(
                user=user,
                days_left=days_left,
                expires_at=user.last_password_update + timedelta(days=max_age),
            ))
    expiring.sort(key=lambda e: e.days_left)
    return expiring


def _in_range(days_left: int, low: int, high: int) -> bool:
    return low <= days_left <= high


async def expiry_report(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, object]:
    """Users grouped by how soon their password expires"""
    expiring = await find_expiring_passwords(db, now=now)
    ranges = {}
    for name, low, high in REPORT_RANGES:
        users = [
            {"username": e.user.username, "days_left": e.days_left, "expires_at": e.expires_at}
            for e in expiring
            if _in_range(e.days_left, low, high)
        ]
        ranges[name] = {"count": len(users), "users": users}

    return {
        "generated_at": now or datetime.utcnow(),
        "max_age_days": settings.PASSWORD_MAX_AGE_DAYS,
        "total": len(expiring),
        "ranges": ranges,
    }


async def send_expiry_alerts(
    db: AsyncSession,
    email_service: EmailService,
    now: Optional[datetime] = None,
    alert_days: Iterable[int] = ALERT_DAYS,
) -> Dict[str, int]:
    """
    Send the alert due today to each user on a threshold day.

    A user is alerted at most once per threshold; the value is cleared
    when the password changes.
    """
    alert_days = set(alert_days)
    summary = {"checked": 0, "notified": 0, "failed": 0}

    for entry in await find_expiring_passwords(db, within_days=max(alert_days), now=now):
        summary["checked"] += 1
        user = entry.user
        if entry.days_left not in alert_days or user.expiry_alert_days == entry.days_left:
            continue

        try:
            sent = await email_service.send_password_expiry_alert(
                user.recovery_email, user.username, entry.days_left
            )
        except EmailDeliveryError as e:
            logger.warning(f"[PasswordExpiry] Alert for {user.username} not sent: {e.message}")
            sent = False

        if not sent:
            summary["failed"] += 1
            continue

        user.expiry_alert_days = entry.days_left
        await db.commit()
        summary["notified"] += 1
        logger.info(
            f"[PasswordExpiry] {entry.alert_type} alert sent to {mask_email(user.recovery_email)} "
            f"({user.username}, {entry.days_left} days left)"
        )

    return summary
