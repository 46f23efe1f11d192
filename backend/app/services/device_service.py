"""
Device registration keyed by MAC address.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, DeviceLimitError, DeviceNotFoundError
from app.core.logging_config import logger
from app.models.device import Device, DeviceType
from app.services.mac_lookup import MacVendorLookup, format_mac


async def list_devices(db: AsyncSession, owner: str) -> List[Device]:
    result = await db.execute(
        select(Device).where(Device.owner_username == owner).order_by(Device.created_at)
    )
    return list(result.scalars().all())


async def count_devices(db: AsyncSession, owner: str) -> int:
    result = await db.execute(
        select(func.count(Device.id)).where(Device.owner_username == owner)
    )
    return result.scalar() or 0


async def get_device(db: AsyncSession, owner: str, device_id: str) -> Device:
    result = await db.execute(
        select(Device).where(Device.id == device_id, Device.owner_username == owner)
    )
    device = result.scalar_one_or_none()
    if device is None:
        raise DeviceNotFoundError(device_id)
    return device


async def register_device(
    db: AsyncSession,
    lookup: MacVendorLookup,
    owner: str,
    mac: str,
    device_type: DeviceType = DeviceType.OTHER,
    device_model: Optional[str] = None,
) -> Device:
    canonical = format_mac(mac)

    existing = await db.execute(select(Device).where(Device.mac == canonical))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"MAC address {canonical} is already registered", code="DEVICE_EXISTS")

    if await count_devices(db, owner) >= settings.MAX_DEVICES_PER_USER:
        raise DeviceLimitError(settings.MAX_DEVICES_PER_USER)

    manufacturer = await lookup.lookup_manufacturer(db, canonical)

    device = Device(
        mac=canonical,
        owner_username=owner,
        device_type=device_type,
        device_model=device_model,
        manufacturer=manufacturer,
        last_seen=datetime.utcnow(),
    )
    db.add(device)
    await db.commit()
    await db.refresh(device)

    logger.info(
        f"[Devices] {owner} registered {canonical} ({manufacturer})",
        extra={"event_type": "device_registered", "device_mac": canonical},
    )
    return device


async def update_device(
    db: AsyncSession,
    owner: str,
    device_id: str,
    device_type: Optional[DeviceType] = None,
    device_model: Optional[str] = None,
) -> Device:
    device = await get_device(db, owner, device_id)
    if device_type is not None:
        device.device_type = device_type
    if device_model is not None:
        device.device_model = device_model
    await db.commit()
    await db.refresh(device)
    return device


async def delete_device(db: AsyncSession, owner: str, device_id: str) -> None:
    device = await get_device(db, owner, device_id)
    await db.delete(device)
    await db.commit()
    logger.info(f"[Devices] {owner} removed {device.mac}")
