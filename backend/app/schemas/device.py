from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.models.device import DeviceType


class DeviceCreate(BaseModel):
    mac: str = Field(..., min_length=12, max_length=32)
    device_type: DeviceType = DeviceType.OTHER
    device_model: Optional[str] = Field(None, max_length=255)


class DeviceUpdate(BaseModel):
    device_type: Optional[DeviceType] = None
    device_model: Optional[str] = Field(None, max_length=255)


class DeviceResponse(BaseModel):
    id: str
    mac: str
    owner_username: str
    device_type: DeviceType
    device_model: Optional[str] = None
    manufacturer: str
    last_seen: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DeviceListResponse(BaseModel):
    devices: List[DeviceResponse]
    total: int
    limit: int


class MacLookupResponse(BaseModel):
    mac: str
    normalized: str
    manufacturer: str
    source: str
