"""
Email Service for the Credentials Portal
========================================
Handles all outgoing mail:
- Verification codes for password recovery
- Password changed notices
- Account activation confirmations

SMTP only (aiosmtplib). The relay enforces a daily sending quota, so every
send is counted and refused locally once EMAIL_DAILY_LIMIT is reached.
"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Dict, Any
from datetime import date, datetime

from app.core.config import settings
from app.core.exceptions import EmailQuotaExceededError
from app.core.logging_config import logger


class DailyEmailCounter:
    """In-process counter of emails sent today (resets at local midnight)"""

    def __init__(self, daily_limit: int):
        self.daily_limit = daily_limit
        self._day = date.today()
        self._count = 0

    def _roll(self) -> None:
        today = date.today()
        if today != self._day:
            self._day = today
            self._count = 0

    @property
    def count(self) -> int:
        self._roll()
        return self._count

    @property
    def remaining(self) -> int:
        return max(self.daily_limit - self.count, 0)

    def check(self) -> None:
        if self.remaining <= 0:
            raise EmailQuotaExceededError(self.daily_limit)

    def increment(self) -> None:
        self._roll()
        self._count += 1

    def stats(self) -> Dict[str, Any]:
        return {
            "date": self._day.isoformat(),
            "sent": self.count,
            "remaining": self.remaining,
            "daily_limit": self.daily_limit,
        }


def mask_email(email: str) -> str:
    """jperez@gmail.com -> j*****@gmail.com"""
    local, _, domain = email.partition("@")
    if not domain:
        return email
    if len(local) <= 1:
        return f"{local}*@{domain}"
    return f"{local[0]}{'*' * (len(local) - 1)}@{domain}"


class EmailService:
    """Async email service over SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.start_tls = settings.SMTP_START_TLS
        self.from_email = settings.EMAIL_FROM
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL
        self.counter = DailyEmailCounter(settings.EMAIL_DAILY_LIMIT)

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise.
        Raises EmailQuotaExceededError when today's quota is used up.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        self.counter.check()

        message = MIMEMultipart("alternative")
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = subject
        if text_content:
            message.attach(MIMEText(text_content, "plain", "utf-8"))
        message.attach(MIMEText(html_content, "html", "utf-8"))

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.start_tls,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"[Email/SMTP] Failed to send email to {mask_email(to_email)}: {e}")
            return False
        except OSError as e:
            logger.error(f"[Email/SMTP] Cannot reach {self.smtp_host}:{self.smtp_port}: {e}")
            return False

        self.counter.increment()
        logger.info(
            f"[Email/SMTP] Sent '{subject}' to {mask_email(to_email)} "
            f"({self.counter.count}/{self.counter.daily_limit} today)"
        )
        return True

    def _wrap(self, title: str, body: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background: #003366; color: white; padding: 24px; text-align: center; border-radius: 10px 10px 0 0; }}
                .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }}
                .code {{ font-size: 32px; letter-spacing: 8px; font-weight: 700; text-align: center; margin: 24px 0; }}
                .footer {{ text-align: center; margin-top: 30px; font-size: 12px; color: #6b7280; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header"><h1>{title}</h1></div>
                <div class="content">{body}</div>
                <div class="footer">
                    <p>{self.from_name} &middot; {datetime.utcnow().year}</p>
                    <p>This is an automated message, please do not reply.</p>
                </div>
            </div>
        </body>
        </html>
        """

    async def send_verification_code(self, to_email: str, code: str, username: str) -> bool:
        """Send a password recovery code"""
        minutes = settings.VERIFICATION_CODE_TTL_MINUTES
        html = self._wrap("Password recovery", f"""
            <p>Hello {username},</p>
            <p>Use this code to reset your institutional password:</p>
            <div class="code">{code}</div>
            <p>The code expires in {minutes} minutes. If you did not request it, ignore this email.</p>
        """)
        text = (
            f"Hello {username},\n\nYour password recovery code is {code}.\n"
            f"It expires in {minutes} minutes.\n"
        )
        return await self.send_email(to_email, "Password recovery code", html, text)

    async def send_password_changed(self, to_email: str, username: str, directory_synced: bool) -> bool:
        """Notify the user their password changed"""
        pending = "" if directory_synced else (
            "<p>Some services may keep accepting your previous password for a few minutes "
            "while the change propagates.</p>"
        )
        html = self._wrap("Password changed", f"""
            <p>Hello {username},</p>
            <p>The password for your institutional account was changed on
            {datetime.utcnow().strftime('%Y-%m-%d %H:%M')} UTC.</p>
            {pending}
            <p>If this was not you, contact the help desk immediately.</p>
            <p><a href="{self.frontend_url}/login">Sign in</a></p>
        """)
        text = f"Hello {username},\n\nThe password for your institutional account was changed.\n"
        return await self.send_email(to_email, "Your password was changed", html, text)

    async def send_activation_confirmation(self, to_email: str, username: str) -> bool:
        html = self._wrap("Account activated", f"""
            <p>Hello {username},</p>
            <p>Your account is now active. This address will receive recovery codes.</p>
            <p><a href="{self.frontend_url}/login">Sign in</a></p>
        """)
        return await self.send_email(to_email, "Account activated", html)

    async def send_password_expiry_alert(self, to_email: str, username: str, days_left: int) -> bool:
        """Warn that the institutional password expires soon, or already has"""
        if days_left <= 0:
            subject = "Your password has expired"
            lead = "<p>Your institutional password has <strong>expired</strong>. Network and email access are suspended until you change it.</p>"
        else:
            plural = "day" if days_left == 1 else "days"
            subject = f"Your password expires in {days_left} {plural}"
            lead = f"<p>Your institutional password expires in <strong>{days_left} {plural}</strong>.</p>"

        html = self._wrap("Password expiry", f"""
            <p>Hello {username},</p>
            {lead}
            <p>Change it from the portal to keep access to network, email and Wi-Fi services.</p>
            <p><a href="{self.frontend_url}/login">Change my password</a></p>
        """)
        text = f"Hello {username},\n\n{subject}. Change it at {self.frontend_url}/login\n"
        return await self.send_email(to_email, subject, html, text)

    def stats(self) -> Dict[str, Any]:
        return {**self.counter.stats(), "configured": self.is_configured}


email_service = EmailService()


def get_email_service() -> EmailService:
    """FastAPI dependency; tests override it with a recording fake"""
    return email_service
