"""
Account activation, password change and backup email updates.
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    PartialSyncError,
    UserNotFoundError,
    ValidationError,
)
from app.core.logging_config import logger
from app.core.security import verify_password
from app.models.user import User
from app.services.auth_service import apply_directory_entry, institutional_email_for
from app.services.directory import DirectoryService
from app.services.email_service import EmailService
from app.services.password_policy import validate_password
from app.services.sync_service import SyncService
from app.services.user_service import get_user_by_username


def _ensure_external_backup_email(email: str) -> str:
    email = email.strip().lower()
    if email.endswith("@" + settings.INSTITUTIONAL_EMAIL_DOMAIN.lower()):
        raise ValidationError("Backup email must not be an institutional address", field="backup_email")
    return email


class AccountService:
    def __init__(
        self,
        db: AsyncSession,
        directory: DirectoryService,
        email_service: EmailService,
    ):
        self.db = db
        self.directory = directory
        self.email_service = email_service
        self.sync_service = SyncService(directory)

    async def activate(self, username: str, employee_id: str, backup_email: str, password: str) -> dict:
        """First-time setup: prove identity, choose a password, register a backup email"""
        entry = await self.directory.find_user(username)
        if entry is None:
            raise UserNotFoundError(username)
        if (entry.employee_id or "").strip() != employee_id.strip():
            logger.log_auth_event("activate", False, username=username, reason="national id mismatch")
            raise ValidationError("Identity could not be verified", field="employee_id")

        if await get_user_by_username(self.db, username) is not None:
            raise ConflictError("This account is already activated", code="ACCOUNT_ACTIVE")

        backup_email = _ensure_external_backup_email(backup_email)
        await self._ensure_backup_email_free(backup_email)

        validate_password(password, username)

        user = User(
            username=username,
            institutional_email=institutional_email_for(username, entry.mail),
            backup_email=backup_email,
        )
        apply_directory_entry(user, entry)
        self.db.add(user)
        await self.db.flush()

        directory_synced = await self._sync(user, password)
        logger.log_auth_event("activate", True, username=username, directory_synced=directory_synced)

        try:
            await self.email_service.send_activation_confirmation(backup_email, username)
        except EmailDeliveryError as e:
            logger.warning(f"[Account] Activation notice not sent to {username}: {e.message}")

        return {
            "username": user.username,
            "institutional_email": user.institutional_email,
            "directory_synced": directory_synced,
        }

    async def change_password(self, user: User, current_password: str, new_password: str) -> bool:
        """Returns whether the directory accepted the change"""
        if not verify_password(current_password, user.hashed_password or ""):
            logger.log_auth_event("change_password", False, username=user.username, reason="bad current password")
            raise AuthenticationError("Current password is incorrect")
        if current_password == new_password:
            raise ValidationError("New password must differ from the current one", field="new_password")

        validate_password(new_password, user.username)
        directory_synced = await self._sync(user, new_password)

        try:
            await self.email_service.send_password_changed(user.recovery_email, user.username, directory_synced)
        except EmailDeliveryError as e:
            logger.warning(f"[Account] Password changed notice not sent to {user.username}: {e.message}")

        return directory_synced

    async def update_backup_email(self, user: User, backup_email: str) -> User:
        backup_email = _ensure_external_backup_email(backup_email)
        await self._ensure_backup_email_free(backup_email, owner_id=user.id)

        user.backup_email = backup_email
        await self.db.commit()
        logger.log_auth_event("backup_email_updated", True, username=user.username)
        return user

    async def _ensure_backup_email_free(self, backup_email: str, owner_id: str = None) -> None:
        """A backup email identifies exactly one account during recovery"""
        query = select(User.id).where(func.lower(User.backup_email) == backup_email)
        if owner_id is not None:
            query = query.where(User.id != owner_id)
        taken = await self.db.execute(query)
        if taken.first() is not None:
            raise ConflictError("Backup email is already used by another account", code="EMAIL_IN_USE")

    async def _sync(self, user: User, password: str) -> bool:
        try:
            await self.sync_service.sync_password(self.db, user, password)
        except PartialSyncError:
            return False
        return True
