# Re-export all models for convenient imports
from app.models.user import User
from app.models.device import Device, DeviceType
from app.models.verification_code import VerificationCode
from app.models.recovery_session import RecoverySession, RecoveryChannel, RecoveryState
from app.models.employee import Employee
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "Device",
    "DeviceType",
    "VerificationCode",
    "RecoverySession",
    "RecoveryChannel",
    "RecoveryState",
    "Employee",
    "AuditLog",
]
