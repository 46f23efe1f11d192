"""
Unit Tests for password expiry tracking and alerts
"""
from datetime import datetime, timedelta

import pytest

from app.core.config import settings
from app.core.exceptions import EmailQuotaExceededError
from app.models.user import User
from app.services.password_expiry import (
    days_until_expiry,
    expiry_report,
    find_expiring_passwords,
    send_expiry_alerts,
)
from app.services.sync_service import SyncService

NOW = datetime(2026, 3, 10, 8, 0)


def changed_days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


async def add_user(db_session, username: str, last_change, is_active: bool = True, backup_email: str = None) -> User:
    user = User(
        username=username,
        institutional_email=f'{username}@uniss.edu.cu',
        backup_email=backup_email,
        last_password_update=last_change,
        is_active=is_active,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def population(db_session, monkeypatch):
    monkeypatch.setattr(settings, 'PASSWORD_MAX_AGE_DAYS', 90)
    await add_user(db_session, 'siete', changed_days_ago(83), backup_email='siete@gmail.com')
    await add_user(db_session, 'cinco', changed_days_ago(85))
    await add_user(db_session, 'uno', changed_days_ago(89))
    await add_user(db_session, 'vencido', changed_days_ago(120))
    await add_user(db_session, 'inactivo', changed_days_ago(87), is_active=False)
    await add_user(db_session, 'sincambio', None)
    await add_user(db_session, 'reciente', changed_days_ago(10))


class TestDaysUntilExpiry:

    @pytest.mark.parametrize("days_ago, days_left", [
        (0, 90),
        (83, 7),
        (83.5, 7),
        (89.9, 1),
        (90, 0),
        (400, 0),
    ])
    def test_rounds_up_and_stops_at_zero(self, days_ago, days_left):
        assert days_until_expiry(changed_days_ago(days_ago), 90, NOW) == days_left

    def test_uses_configured_max_age(self, monkeypatch):
        monkeypatch.setattr(settings, 'PASSWORD_MAX_AGE_DAYS', 30)

        assert days_until_expiry(changed_days_ago(27), now=NOW) == 3


class TestFindExpiringPasswords:

    @pytest.mark.asyncio
    async def test_active_users_soonest_first(self, db_session, population):
        expiring = await find_expiring_passwords(db_session, now=NOW)

        assert [(e.user.username, e.days_left) for e in expiring] == [
            ('vencido', 0), ('uno', 1), ('cinco', 5), ('siete', 7),
        ]
        assert expiring[0].alert_type == 'expired'
        assert expiring[2].alert_type is None
        assert expiring[3].expires_at == changed_days_ago(83) + timedelta(days=90)


class TestExpiryReport:

    @pytest.mark.asyncio
    async def test_grouped_by_range(self, db_session, population):
        report = await expiry_report(db_session, now=NOW)

        assert report['total'] == 4
        assert report['max_age_days'] == 90
        counts = {name: r['count'] for name, r in report['ranges'].items()}
        assert counts == {'4-7': 2, '2-3': 0, '1': 1, 'expired': 1}
        assert report['ranges']['1']['users'][0]['username'] == 'uno'


class TestSendExpiryAlerts:

    @pytest.mark.asyncio
    async def test_alerts_on_threshold_days(self, db_session, population, fake_email):
        summary = await send_expiry_alerts(db_session, fake_email, now=NOW)

        assert summary == {'checked': 4, 'notified': 3, 'failed': 0}
        assert sorted(m['to'] for m in fake_email.sent) == [
            'siete@gmail.com', 'uno@uniss.edu.cu', 'vencido@uniss.edu.cu',
        ]
        assert 'Your password has expired' in fake_email.subjects()

    @pytest.mark.asyncio
    async def test_same_threshold_alerted_once(self, db_session, population, fake_email):
        await send_expiry_alerts(db_session, fake_email, now=NOW)
        summary = await send_expiry_alerts(db_session, fake_email, now=NOW + timedelta(hours=2))

        assert summary['notified'] == 0
        assert len(fake_email.sent) == 3

    @pytest.mark.asyncio
    async def test_next_threshold_alerted_again(self, db_session, population, fake_email):
        await send_expiry_alerts(db_session, fake_email, now=NOW)
        summary = await send_expiry_alerts(db_session, fake_email, now=NOW + timedelta(days=4))

        # vencido already had its expired alert
        assert summary['notified'] == 3
        assert fake_email.subjects()[-3:] == [
            'Your password has expired',
            'Your password expires in 1 day',
            'Your password expires in 3 days',
        ]

    @pytest.mark.asyncio
    async def test_undelivered_alert_retried_next_run(self, db_session, population, fake_email):
        fake_email.deliver = False
        summary = await send_expiry_alerts(db_session, fake_email, now=NOW)

        assert summary == {'checked': 4, 'notified': 0, 'failed': 3}

        fake_email.deliver = True
        summary = await send_expiry_alerts(db_session, fake_email, now=NOW)
        assert summary['notified'] == 3

    @pytest.mark.asyncio
    async def test_quota_counts_as_failure(self, db_session, population, fake_email, monkeypatch):
        async def over_quota(to_email, username, days_left):
            raise EmailQuotaExceededError(500)

        monkeypatch.setattr(fake_email, 'send_password_expiry_alert', over_quota)

        summary = await send_expiry_alerts(db_session, fake_email, now=NOW)

        assert summary['failed'] == 3
        assert summary['notified'] == 0

    @pytest.mark.asyncio
    async def test_password_change_rearms_alerts(self, db_session, fake_directory, fake_email, monkeypatch):
        monkeypatch.setattr(settings, 'PASSWORD_MAX_AGE_DAYS', 90)
        fake_directory.add_user('uno', 'Old!Passw0rd1')
        user = await add_user(db_session, 'uno', datetime.utcnow() - timedelta(days=89))
        await send_expiry_alerts(db_session, fake_email)
        assert user.expiry_alert_days == 1

        await SyncService(fake_directory).sync_password(db_session, user, 'N3w!Passw0rd2024')

        assert user.expiry_alert_days is None
        assert days_until_expiry(user.last_password_update) == 90
