from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.device import (
    DeviceCreate,
    DeviceUpdate,
    DeviceResponse,
    DeviceListResponse,
    MacLookupResponse,
)
from app.services import device_service
from app.services.mac_lookup import MacVendorLookup, get_mac_lookup, format_mac, normalize_mac

router = APIRouter()


@router.get("", response_model=DeviceListResponse)
async def list_devices(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    devices = await device_service.list_devices(db, current_user.username)
    return DeviceListResponse(
        devices=[DeviceResponse.model_validate(d) for d in devices],
        total=len(devices),
        limit=settings.MAX_DEVICES_PER_USER,
    )


@router.post("", response_model=DeviceResponse, status_code=status.HTTP_201_CREATED)
async def register_device(
    body: DeviceCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    lookup: MacVendorLookup = Depends(get_mac_lookup),
):
    """Register a device; the manufacturer is resolved from the MAC"""
    return await device_service.register_device(
        db, lookup, current_user.username, body.mac, body.device_type, body.device_model
    )


@router.get("/lookup/{mac}", response_model=MacLookupResponse)
async def lookup_mac(
    mac: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    lookup: MacVendorLookup = Depends(get_mac_lookup),
):
    result = await lookup.lookup(db, mac)
    return MacLookupResponse(
        mac=format_mac(mac),
        normalized=normalize_mac(mac),
        manufacturer=result.manufacturer,
        source=result.source,
    )


@router.get("/{device_id}", response_model=DeviceResponse)
async def get_device(
    device_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await device_service.get_device(db, current_user.username, device_id)


@router.patch("/{device_id}", response_model=DeviceResponse)
async def update_device(
    device_id: str,
    body: DeviceUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await device_service.update_device(
        db, current_user.username, device_id, body.device_type, body.device_model
    )


@router.delete("/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_device(
    device_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await device_service.delete_device(db, current_user.username, device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
