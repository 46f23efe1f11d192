from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text
from datetime import datetime

from app.core.database import Base, generate_uuid


class User(Base):
    """Local credential record mirroring a directory account"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(100), unique=True, index=True, nullable=False)
    institutional_email = Column(String(255), unique=True, index=True, nullable=False)
    backup_email = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=True)
    last_password_update = Column(DateTime, nullable=True)

    # Directory attributes copied at activation / login
    display_name = Column(String(255), nullable=True)
    employee_id = Column(String(20), index=True, nullable=True)  # national id ("carnet")
    title = Column(String(255), nullable=True)

    # Two-factor (secret is Fernet encrypted)
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    two_factor_secret = Column(Text, nullable=True)

    # Recovery PIN (bcrypt)
    pin_hash = Column(String(255), nullable=True)

    # Directory synchronization
    ldap_synced = Column(Boolean, default=True, nullable=False)
    pending_directory_password = Column(Text, nullable=True)  # Fernet encrypted

    # Days-left value of the last expiry alert sent; cleared on password change
    expiry_alert_days = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def has_pin(self) -> bool:
        return bool(self.pin_hash)

    @property
    def recovery_email(self) -> str:
        """Where recovery codes are delivered"""
        return self.backup_email or self.institutional_email

    def __repr__(self):
        return f"<User {self.username}>"
