"""
Market ranking models — locations, vehicle economics, and scored markets.

``ScoredMarket`` is the engine's terminal artifact: one candidate market with
its seasonal high/low prices, activity, distance, transport cost, and the
composite 0–5 score.  It is frozen; distance enrichment produces a new
instance via ``model_copy(update=...)``.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from mandi_intel.utils.time_utils import month_abbr


def _check_latitude(v: float) -> float:
    if not -90.0 <= v <= 90.0:
        raise ValueError(f"Latitude {v} out of range [-90, 90].")
    return v


def _check_longitude(v: float) -> float:
    if not -180.0 <= v <= 180.0:
        raise ValueError(f"Longitude {v} out of range [-180, 180].")
    return v


class GeoPoint(BaseModel):
    """A latitude / longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float

    @field_validator("lat")
    @classmethod
    def validate_lat(cls, v: float) -> float:
        return _check_latitude(v)

    @field_validator("lon")
    @classmethod
    def validate_lon(cls, v: float) -> float:
        return _check_longitude(v)


class UserLocation(BaseModel):
    """The producer's reference point for distance and state priority.

    Attributes:
        lat: Latitude of the producer.
        lon: Longitude of the producer.
        state: Producer's state, used for the heuristic distance fallback
            and for state-priority ranking.
        district: Producer's district, used for the heuristic fallback.
    """

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float
    state: Optional[str] = None
    district: Optional[str] = None

    @field_validator("lat")
    @classmethod
    def validate_lat(cls, v: float) -> float:
        return _check_latitude(v)

    @field_validator("lon")
    @classmethod
    def validate_lon(cls, v: float) -> float:
        return _check_longitude(v)

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)


class VehicleInfo(BaseModel):
    """Fuel price and mileage of the producer's vehicle."""

    model_config = ConfigDict(frozen=True)

    fuel_price_per_liter: float
    mileage_km_per_liter: float

    @field_validator("fuel_price_per_liter", "mileage_km_per_liter")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Vehicle figures must be non-negative, got {v}.")
        return v


class ScoredMarket(BaseModel):
    """A candidate market with price statistics and its composite score.

    Attributes:
        state: Market state.
        district: Market district.
        market: Market name as reported.
        high_price: Highest of the twelve monthly mean max prices (rounded).
        high_price_month: Month (1–12) ``high_price`` came from.
        low_price: Lowest positive monthly mean min price (rounded), or 0.
        low_price_month: Month ``low_price`` came from, or ``None``.
        arrivals_avg: Mean arrivals (tonnes) across the market's records.
        distance_km: Straight-line distance from the producer, or ``None``
            when not resolved.
        transport_cost: Rounded fuel cost to reach the market (0 if unknown).
        score: Composite score in 0..5.
        record_count: Number of price records behind these statistics.
        latest_reported_date: Most recent report date for this market.
    """

    model_config = ConfigDict(frozen=True)

    state: str
    district: str
    market: str
    high_price: float
    high_price_month: int
    low_price: float
    low_price_month: Optional[int] = None
    arrivals_avg: float
    distance_km: Optional[float] = None
    transport_cost: int = 0
    score: int = 0
    record_count: int = 0
    latest_reported_date: Optional[date] = None

    @field_validator("score")
    @classmethod
    def validate_score(cls, v: int) -> int:
        if not 0 <= v <= 5:
            raise ValueError(f"score must be in [0, 5], got {v}.")
        return v

    @property
    def high_price_month_abbr(self) -> str:
        return month_abbr(self.high_price_month)

    @property
    def low_price_month_abbr(self) -> str:
        return month_abbr(self.low_price_month)
