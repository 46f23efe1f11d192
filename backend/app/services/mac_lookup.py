"""
MAC address normalization and vendor lookup.

Lookup order is fixed and stops at the first non-empty answer:
    1. local   - a registered device already carries a manufacturer for the same OUI
    2. macvendors.com  (plain text body, "Not Found" means no match)
    3. maclookup.app   (JSON, ``company`` field)
Falls back to ``UNKNOWN_MANUFACTURER``. No caching and no retries.
"""

import re
from dataclasses import dataclass
from typing import Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidMacAddressError
from app.core.logging_config import logger
from app.models.device import Device

UNKNOWN_MANUFACTURER = "Unknown"

_SEPARATORS = re.compile(r"[:\-.\s]")
_HEX12 = re.compile(r"^[0-9A-F]{12}$")


def normalize_mac(mac: str) -> str:
    """00:14:22:01:23:45 / 00-14-22-01-23-45 / 0014.2201.2345 -> 001422012345"""
    if mac is None:
        raise InvalidMacAddressError("")
    cleaned = _SEPARATORS.sub("", mac).upper()
    if not _HEX12.match(cleaned):
        raise InvalidMacAddressError(mac)
    return cleaned


def format_mac(mac: str) -> str:
    """Any accepted form -> AA:BB:CC:DD:EE:FF"""
    hex12 = normalize_mac(mac)
    return ":".join(hex12[i:i + 2] for i in range(0, 12, 2))


@dataclass
class VendorResult:
    manufacturer: str
    source: str  # local | macvendors | maclookup | none


class MacVendorLookup:
    """Resolves the manufacturer of a MAC address"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self.macvendors_url = settings.MACVENDORS_API_URL.rstrip("/")
        self.maclookup_url = settings.MACLOOKUP_API_URL.rstrip("/")
        self.timeout = settings.MAC_LOOKUP_TIMEOUT

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url)

    async def _local(self, db: AsyncSession, hex12: str) -> Optional[str]:
        prefix = format_mac(hex12)[:8]
        result = await db.execute(
            select(Device.manufacturer).where(
                Device.mac.like(f"{prefix}%"),
                Device.manufacturer != UNKNOWN_MANUFACTURER,
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def _macvendors(self, hex12: str) -> Optional[str]:
        try:
            response = await self._get(f"{self.macvendors_url}/{format_mac(hex12)}")
        except httpx.HTTPError as e:
            logger.warning(f"[MacLookup] macvendors unreachable: {e}")
            return None

        if response.status_code != 200:
            if response.status_code != 404:
                logger.warning(f"[MacLookup] macvendors returned {response.status_code}")
            return None
        body = response.text.strip()
        if not body or "not found" in body.lower() or body.startswith("{"):
            return None
        return body

    async def _maclookup(self, hex12: str) -> Optional[str]:
        try:
            response = await self._get(f"{self.maclookup_url}/{hex12}")
        except httpx.HTTPError as e:
            logger.warning(f"[MacLookup] maclookup unreachable: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"[MacLookup] maclookup returned {response.status_code}")
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        company = (data or {}).get("company") if isinstance(data, dict) else None
        return company.strip() if company and company.strip() else None

    async def lookup(self, db: AsyncSession, mac: str) -> VendorResult:
        hex12 = normalize_mac(mac)

        manufacturer = await self._local(db, hex12)
        if manufacturer:
            return VendorResult(manufacturer, "local")

        manufacturer = await self._macvendors(hex12)
        if manufacturer:
            return VendorResult(manufacturer, "macvendors")

        manufacturer = await self._maclookup(hex12)
        if manufacturer:
            return VendorResult(manufacturer, "maclookup")

        # Also what an outage of both APIs looks like; keep it visible
        logger.warning(f"[MacLookup] No manufacturer for {format_mac(hex12)}")
        return VendorResult(UNKNOWN_MANUFACTURER, "none")

    async def lookup_manufacturer(self, db: AsyncSession, mac: str) -> str:
        return (await self.lookup(db, mac)).manufacturer


def get_mac_lookup() -> MacVendorLookup:
    """FastAPI dependency; tests inject a client on httpx.MockTransport"""
    return MacVendorLookup()
