from sqlalchemy import Column, String, DateTime, Index
from datetime import datetime

from app.core.database import Base, generate_uuid


class VerificationCode(Base):
    """Short-lived numeric code sent by email"""
    __tablename__ = "verification_codes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False)
    purpose = Column(String(50), nullable=False, default="password_reset")
    code_hash = Column(String(128), nullable=False)

    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_verification_codes_email_purpose", "email", "purpose"),
    )

    def is_usable(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return self.consumed_at is None and self.expires_at > now

    def __repr__(self):
        return f"<VerificationCode {self.email} {self.purpose}>"
