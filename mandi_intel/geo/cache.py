"""
Geocoding cache strategies.

Only successful lookups are stored; a place that could not be resolved is
retried on the next request.  Entries never expire: a market does not move.

Strategies
----------
  unbounded : plain dict, grows with the number of distinct place names.
  lru       : bounded ``OrderedDict``; the least recently used entry is
              evicted once ``max_entries`` is reached.

All mutation happens on the event loop thread, so no locking is needed.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional, Protocol

from mandi_intel.config import GeocodingConfig
from mandi_intel.models.market import GeoPoint


class GeoCache(Protocol):
    """Place name → coordinates store."""

    def get(self, place_name: str) -> Optional[GeoPoint]: ...

    def set(self, place_name: str, point: GeoPoint) -> None: ...

    def __contains__(self, place_name: object) -> bool: ...

    def __len__(self) -> int: ...


class UnboundedGeoCache:
    """Append-only cache with no size limit."""

    def __init__(self) -> None:
        self._data: dict[str, GeoPoint] = {}

    def get(self, place_name: str) -> Optional[GeoPoint]:
        return self._data.get(place_name)

    def set(self, place_name: str, point: GeoPoint) -> None:
        self._data[place_name] = point

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, place_name: object) -> bool:
        return place_name in self._data

    def __len__(self) -> int:
        return len(self._data)


class LRUGeoCache:
    """Bounded cache evicting the least recently used place name.

    Args:
        max_entries: Capacity (>= 1).

    Raises:
        ValueError: If ``max_entries`` is less than 1.
    """

    def __init__(self, max_entries: int) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}.")
        self.max_entries = max_entries
        self._data: OrderedDict[str, GeoPoint] = OrderedDict()

    def get(self, place_name: str) -> Optional[GeoPoint]:
        point = self._data.get(place_name)
        if point is not None:
            self._data.move_to_end(place_name)
        return point

    def set(self, place_name: str, point: GeoPoint) -> None:
        self._data[place_name] = point
        self._data.move_to_end(place_name)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, place_name: object) -> bool:
        return place_name in self._data

    def __len__(self) -> int:
        return len(self._data)


def build_geo_cache(config: GeocodingConfig) -> GeoCache:
    """Instantiate the cache strategy named by ``config.cache_strategy``."""
    if config.cache_strategy == "lru":
        return LRUGeoCache(config.cache_max_entries)
    return UnboundedGeoCache()
