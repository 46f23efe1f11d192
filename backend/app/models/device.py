from sqlalchemy import Column, String, DateTime, Enum as SQLEnum
from datetime import datetime
import enum

from app.core.database import Base, generate_uuid


class DeviceType(str, enum.Enum):
    """Kinds of device a user can register"""
    PC = "PC"
    LAPTOP = "Laptop"
    PHONE = "Phone"
    TABLET = "Tablet"
    OTHER = "Other"


class Device(Base):
    """Network device registered by MAC address"""
    __tablename__ = "devices"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    mac = Column(String(17), unique=True, index=True, nullable=False)  # AA:BB:CC:DD:EE:FF
    owner_username = Column(String(100), index=True, nullable=False)
    device_type = Column(
        SQLEnum(DeviceType, values_callable=lambda e: [m.value for m in e]),
        default=DeviceType.OTHER,
        nullable=False,
    )
    device_model = Column(String(255), nullable=True)
    manufacturer = Column(String(255), nullable=False, default="Unknown")

    last_seen = Column(DateTime, default=datetime.utcnow, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def oui(self) -> str:
        """Vendor prefix, first three octets"""
        return self.mac[:8]

    def __repr__(self):
        return f"<Device {self.mac} ({self.owner_username})>"
