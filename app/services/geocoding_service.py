"""
Job site geocoding
Resolves a project address to coordinates via the Google Geocoding API.

Lookups never raise: every failure (no key, HTTP error, empty result,
network error) is logged and reported as None so the caller can skip the
job and try again on a later tick.
"""

import logging
from typing import Optional, Tuple

import httpx

from ..cache import Cache, build_geocode_key
from ..cache import cache as default_cache
from ..config import (
    GEOCODE_CACHE_SECONDS,
    GEOCODING_TIMEOUT_SECONDS,
    GOOGLE_GEOCODE_URL,
    GOOGLE_MAPS_API_KEY,
)
from ..models import Project
from ..utils.gps import format_full_address

logger = logging.getLogger(__name__)

Coordinates = Tuple[float, float]


class GeocodingService:
    def __init__(
        self,
        api_key: Optional[str] = GOOGLE_MAPS_API_KEY,
        base_url: str = GOOGLE_GEOCODE_URL,
        timeout: float = GEOCODING_TIMEOUT_SECONDS,
        cache: Optional[Cache] = default_cache,
        cache_ttl: int = GEOCODE_CACHE_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.transport = transport

    async def geocode(self, address: str) -> Optional[Coordinates]:
        """Return (lat, lng) for an address, or None if it can't be resolved"""
        address = (address or "").strip()
        if not address:
            return None

        cache_key = build_geocode_key(address)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached:
                return float(cached["lat"]), float(cached["lng"])

        if not self.api_key:
            logger.warning("⚠️ GOOGLE_MAPS_API_KEY not set - cannot geocode job addresses")
            return None

        params = {"address": address, "key": self.api_key}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(self.base_url, params=params)
                if resp.status_code >= 400:
                    logger.warning(f"Geocoding error {resp.status_code}: {resp.text[:200]}")
                    return None

                data = resp.json()

            results = data.get("results") or []
            if not results:
                logger.info(f"📍 No geocoding result for '{address}' (status: {data.get('status')})")
                return None

            location = results[0]["geometry"]["location"]
            coords = (float(location["lat"]), float(location["lng"]))
        except Exception as e:
            logger.error(f"❌ Error geocoding job address '{address}': {e}")
            return None

        if self.cache is not None:
            self.cache.set(cache_key, {"lat": coords[0], "lng": coords[1]}, self.cache_ttl)

        return coords

    async def geocode_project(self, project: Project) -> Optional[Coordinates]:
        full_address = format_full_address(
            project.address, project.city, project.state, project.zip_code
        )
        return await self.geocode(full_address)
