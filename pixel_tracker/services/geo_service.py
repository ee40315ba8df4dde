"""
Geo Service - coarse IP geolocation (city / region / country)
Lookups are cached per IP; failures degrade to "no location".
"""
import ipaddress
import logging
from dataclasses import asdict, dataclass
from typing import Optional

import httpx

from pixel_tracker.core.cache import TTLCache, cache_key
from pixel_tracker.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoData:
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    timezone: Optional[str] = None


def is_public_ip(ip: Optional[str]) -> bool:
    if not ip:
        return False
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_global


class GeoService:
    """ip-api.com compatible lookup client."""

    def __init__(
        self,
        cache: TTLCache,
        base_url: str = settings.GEO_LOOKUP_URL,
        timeout: float = settings.GEO_LOOKUP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def lookup(self, ip: Optional[str]) -> Optional[GeoData]:
        """
        Resolve IP to coarse location.

        Returns:
            GeoData, or None for private/invalid IPs and failed lookups
        """
        if not is_public_ip(ip):
            return None

        try:
            data = await self.cache.get_or_compute(
                cache_key("geo", ip),
                settings.GEO_CACHE_TTL,
                lambda: self._fetch(ip),
            )
        except (httpx.HTTPError, ValueError) as e:
            # Not cached, the next event for this IP tries again
            logger.warning(f"Geo lookup failed for {ip}: {e}")
            return None
        return GeoData(**data) if data else None

    async def _fetch(self, ip: str) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}/{ip}")
            response.raise_for_status()
            body = response.json()

        if body.get("status") != "success":
            logger.debug(f"Geo lookup returned no data for {ip}: {body.get('message')}")
            return {}

        return asdict(GeoData(
            city=body.get("city"),
            region=body.get("regionName"),
            country=body.get("country"),
            country_code=body.get("countryCode"),
            timezone=body.get("timezone"),
        ))
