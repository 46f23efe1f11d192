from sqlalchemy import Column, String, DateTime, Text, JSON
from datetime import datetime

from app.core.database import Base, generate_uuid


class AuditLog(Base):
    """Security relevant events: logins, activations, password changes and resets"""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(100), index=True, nullable=True)  # as typed, even when unknown

    action = Column(String(50), nullable=False, index=True)  # e.g. 'authentication', 'change_password'
    result = Column(String(10), nullable=False)  # 'success' | 'failed'
    details = Column(JSON, nullable=True)  # never passwords, PINs or codes

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action}:{self.result} {self.username}>"
