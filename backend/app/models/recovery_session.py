from sqlalchemy import Column, String, Integer, DateTime, Enum as SQLEnum
from datetime import datetime
import enum

from app.core.database import Base


class RecoveryChannel(str, enum.Enum):
    """How the user proves identity during recovery"""
    EMAIL = "email"
    PIN = "pin"
    TOTP = "totp"


class RecoveryState(str, enum.Enum):
    """Wizard steps, in order"""
    IDENTIFY = "identify"
    VERIFY = "verify"
    RESET = "reset"
    SUCCESS = "success"


def _enum_values(e):
    return [m.value for m in e]


class RecoverySession(Base):
    """Server-side record of one password recovery wizard run"""
    __tablename__ = "recovery_sessions"

    id = Column(String(64), primary_key=True)  # opaque token handed to the client
    channel = Column(SQLEnum(RecoveryChannel, values_callable=_enum_values), nullable=False)
    state = Column(
        SQLEnum(RecoveryState, values_callable=_enum_values),
        default=RecoveryState.IDENTIFY,
        nullable=False,
    )
    username = Column(String(100), index=True, nullable=False)

    failed_attempts = Column(Integer, default=0, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_expired(self, now: datetime = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at

    def __repr__(self):
        return f"<RecoverySession {self.username} {self.channel.value}:{self.state.value}>"
