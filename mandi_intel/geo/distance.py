"""
Producer-to-market distance resolution.

Resolution chain (first success wins)
-------------------------------------
1. Geocode ``"<normalized market>, <district>, <state>"``.
2. Geocode ``"<district>, <state>"``.
3. Heuristic tier from the producer's own state / district:
       same state and same district → 50 km
       same state                   → 150 km
       otherwise                    → 300 km

A geocoded distance of exactly 0 km is reported as ``MIN_TRAVEL_KM`` (30 km).
Distances are straight-line (haversine, R = 6371 km), not road distances.

Caching
-------
Every successfully resolved place name goes into the ``GeoCache``; a cache
hit makes no geocoder call.  A geocoder that times out or raises counts as
"not found" for that name, and failures are never cached.  With
``single_flight=True`` concurrent lookups of the same uncached name await
one shared request instead of each issuing their own.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Optional, Sequence

from mandi_intel.geo.cache import GeoCache, UnboundedGeoCache
from mandi_intel.geo.client import Geocoder
from mandi_intel.models.market import GeoPoint, ScoredMarket, UserLocation

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
MIN_TRAVEL_KM   = 30.0

SAME_DISTRICT_KM = 50.0
SAME_STATE_KM    = 150.0
OTHER_STATE_KM   = 300.0

_PARENTHETICAL = re.compile(r"\s*\(.*\)\s*")


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1, lon1 = math.radians(a.lat), math.radians(a.lon)
    lat2, lon2 = math.radians(b.lat), math.radians(b.lon)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def normalize_market_name(market: str) -> str:
    """Drop parenthetical qualifiers: ``"Siyana (Sub Yard)"`` → ``"Siyana"``."""
    return _PARENTHETICAL.sub("", market).strip()


def market_place_name(market: ScoredMarket) -> str:
    return f"{normalize_market_name(market.market)}, {market.district}, {market.state}"


def district_place_name(market: ScoredMarket) -> str:
    return f"{market.district}, {market.state}"


def heuristic_distance_km(market: ScoredMarket, user: UserLocation) -> float:
    """Fallback distance tier when neither place name geocodes."""
    if user.state is not None and market.state == user.state:
        if user.district is not None and market.district == user.district:
            return SAME_DISTRICT_KM
        return SAME_STATE_KM
    return OTHER_STATE_KM


class DistanceResolver:
    """Resolves market distances through a geocoder with caching and fallback.

    Args:
        geocoder:      Place-name resolver (``NominatimGeocoder`` in production).
        cache:         Resolved-name store; defaults to ``UnboundedGeoCache``.
        timeout_s:     Upper bound on one geocoder call; a timeout or an
                       exception counts as "not found".
        single_flight: Share one in-flight lookup per uncached place name.
    """

    def __init__(
        self,
        geocoder:      Geocoder,
        cache:         Optional[GeoCache] = None,
        timeout_s:     Optional[float] = None,
        single_flight: bool = True,
    ) -> None:
        self.geocoder      = geocoder
        self.cache         = cache if cache is not None else UnboundedGeoCache()
        self.timeout_s     = timeout_s
        self.single_flight = single_flight
        self._in_flight: dict[str, asyncio.Future] = {}

    async def resolve_point(self, place_name: str) -> Optional[GeoPoint]:
        """Coordinates for ``place_name``: cache, then geocoder; ``None`` if unknown."""
        cached = self.cache.get(place_name)
        if cached is not None:
            return cached

        if not self.single_flight:
            return await self._lookup(place_name)

        pending = self._in_flight.get(place_name)
        if pending is None:
            pending = asyncio.ensure_future(self._lookup(place_name))
            self._in_flight[place_name] = pending
            pending.add_done_callback(lambda _: self._in_flight.pop(place_name, None))
        return await asyncio.shield(pending)

    async def distance_for(
        self,
        market: ScoredMarket,
        user:   UserLocation,
    ) -> float:
        """Distance in km from ``user`` to ``market`` (never ``None``)."""
        point = await self.resolve_point(market_place_name(market))
        if point is None:
            logger.debug(
                "No coordinates for market '%s'; falling back to district.",
                market_place_name(market),
            )
            point = await self.resolve_point(district_place_name(market))

        if point is None:
            distance = heuristic_distance_km(market, user)
            logger.debug(
                "Heuristic distance %.0f km for %s / %s",
                distance, market.market, market.district,
            )
        else:
            distance = haversine_km(user.point, point)

        if distance == 0:
            distance = MIN_TRAVEL_KM
        return distance

    async def resolve_many(
        self,
        markets: Sequence[ScoredMarket],
        user:    UserLocation,
    ) -> list[float]:
        """Distances for ``markets`` resolved concurrently, in input order."""
        return list(
            await asyncio.gather(*(self.distance_for(m, user) for m in markets))
        )

    async def _lookup(self, place_name: str) -> Optional[GeoPoint]:
        try:
            if self.timeout_s is None:
                point = await self.geocoder.resolve(place_name)
            else:
                point = await asyncio.wait_for(
                    self.geocoder.resolve(place_name), timeout=self.timeout_s
                )
        except asyncio.TimeoutError:
            logger.warning(
                "Geocoding '%s' timed out after %.1fs", place_name, self.timeout_s
            )
            return None
        except Exception as exc:  # noqa: BLE001 - a failed lookup falls back to the next tier
            logger.warning("Geocoding '%s' failed: %s", place_name, exc)
            return None

        if point is not None:
            self.cache.set(place_name, point)
        return point
