"""
Place-name geocoding over the OpenStreetMap Nominatim search API.

Contract
--------
``await geocoder.resolve("Siyana, Bulandshahar, Uttar Pradesh")``
  → ``GeoPoint`` for the first search hit, or ``None`` when the place is
    unknown, the request fails, times out, or the payload is malformed.

``resolve`` never raises for network or payload problems; a missing point
sends the caller to its fallback tiers.

Politeness
----------
Nominatim's usage policy asks for an identifying User-Agent and at most one
request per second.  Requests pass through a semaphore (``max_concurrency``)
and an interval gate that spaces request *starts* by ``min_interval_s``.

Request::

    GET {base_url}?q=<place>&format=json&limit=1
    User-Agent: mandi-intel/0.1 (market-ranking)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Protocol

import httpx

from mandi_intel.config import GeocodingConfig
from mandi_intel.models.market import GeoPoint

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    """Resolves a free-text place name to coordinates."""

    async def resolve(self, place_name: str) -> Optional[GeoPoint]: ...


class NominatimGeocoder:
    """Async Nominatim client with throttling.

    Args:
        config: Geocoding settings (URL, User-Agent, limits).
        client: Optional pre-built ``httpx.AsyncClient`` (e.g. with a
                ``MockTransport`` in tests).  When omitted the geocoder owns
                a client and closes it in ``aclose()``.
    """

    def __init__(
        self,
        config: Optional[GeocodingConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or GeocodingConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout_s)
        self._semaphore = asyncio.Semaphore(self.config.max_concurrency)
        self._interval_lock = asyncio.Lock()
        self._last_start = 0.0

    async def __aenter__(self) -> "NominatimGeocoder":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def resolve(self, place_name: str) -> Optional[GeoPoint]:
        """Look up ``place_name``; ``None`` if not found or on any failure."""
        params = {"q": place_name, "format": "json", "limit": 1}
        headers = {"User-Agent": self.config.user_agent, "Accept": "application/json"}

        async with self._semaphore:
            await self._wait_for_slot()
            try:
                resp = await self._client.get(
                    self.config.base_url,
                    params=params,
                    headers=headers,
                    timeout=self.config.timeout_s,
                )
                resp.raise_for_status()
                payload = resp.json()
            except httpx.HTTPError as exc:
                logger.warning("Geocoding '%s' failed: %s", place_name, exc)
                return None
            except ValueError as exc:
                logger.warning("Geocoding '%s' returned invalid JSON: %s", place_name, exc)
                return None

        point = _first_point(payload)
        if point is None:
            logger.info("Could not find coordinates for '%s'", place_name)
        else:
            logger.debug("Geocoded '%s' -> (%.5f, %.5f)", place_name, point.lat, point.lon)
        return point

    async def _wait_for_slot(self) -> None:
        """Block until ``min_interval_s`` has passed since the previous start."""
        if self.config.min_interval_s <= 0:
            return
        async with self._interval_lock:
            wait = self._last_start + self.config.min_interval_s - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_start = time.monotonic()


def _first_point(payload: Any) -> Optional[GeoPoint]:
    """Extract the first ``{"lat": ..., "lon": ...}`` hit from a search payload."""
    if not isinstance(payload, list) or not payload:
        return None
    first = payload[0]
    try:
        return GeoPoint(lat=float(first["lat"]), lon=float(first["lon"]))
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Malformed geocoding hit %r: %s", first, exc)
        return None
