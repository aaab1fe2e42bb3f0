"""
Market scoring: per-market price statistics, transport cost, and the
composite 0–5 recommendation score.

Market statistics (per (state, district, market) group)
--------------------------------------------------------
    monthly_max[m] = mean(max_price > 0 in month m)   or mean(all max_price > 0), or 0
    monthly_min[m] = mean(min_price > 0 in month m)   or mean(all min_price > 0), or 0

    high_price = max(monthly_max)                 first month wins ties
    low_price  = min(monthly_min where > 0)       first month wins ties; 0 if none
    arrivals_avg = mean(arrivals_tonnes)

Both prices are rounded half-up to whole numbers.  A group whose
``high_price`` is not positive is not a candidate.

Transport
---------
    cost_per_km    = fuel_price_per_liter / mileage_km_per_liter    (0 if mileage 0)
    transport_cost = round(cost_per_km × distance_km)               (0 if unknown)

Score formula
-------------
    price_score    = high_price / 10000
    distance_score = 10 (< 50 km) | 7 (< 200 km) | 4 (otherwise or unknown)
    arrival_score  = min(arrivals_avg / 10, 5)

    score = clamp(round((price_score + distance_score + arrival_score) / 3), 0, 5)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from statistics import fmean
from typing import Optional, Sequence

from mandi_intel.analysis.seasonal import monthly_averages
from mandi_intel.models.market import VehicleInfo
from mandi_intel.models.record import MarketRecord
from mandi_intel.utils.numbers import clamp, round_half_up
from mandi_intel.utils.time_utils import MONTHS

MAX_SCORE = 5

PRICE_SCORE_DIVISOR   = 10_000.0
ARRIVAL_SCORE_DIVISOR = 10.0
ARRIVAL_SCORE_CAP     = 5.0

# (upper bound exclusive, score); the first bound the distance falls under wins.
_DISTANCE_TIERS: tuple[tuple[float, float], ...] = (
    (50.0,  10.0),
    (200.0,  7.0),
)
_FAR_DISTANCE_SCORE = 4.0


@dataclass
class MarketStats:
    """Seasonal price statistics of one market for one variety.

    Attributes:
        state, district, market: Group key.
        high_price:           Highest monthly mean max price (rounded).
        high_price_month:     Month of ``high_price``.
        low_price:            Lowest positive monthly mean min price (rounded),
                              0 when no positive min price exists.
        low_price_month:      Month of ``low_price``; ``None`` when 0.
        arrivals_avg:         Mean arrivals over the group's records.
        record_count:         Records in the group.
        latest_reported_date: Most recent report date in the group.
    """

    state:                str
    district:             str
    market:               str
    high_price:           int
    high_price_month:     Optional[int]
    low_price:            int
    low_price_month:      Optional[int]
    arrivals_avg:         float
    record_count:         int
    latest_reported_date: Optional[date]


@dataclass
class ScoreComponents:
    """Components of the composite market score.

    Attributes:
        price_score:    ``high_price / 10000``.
        distance_score: 10 / 7 / 4 by distance tier.
        arrival_score:  ``arrivals_avg / 10`` capped at 5.
    """

    price_score:    float
    distance_score: float
    arrival_score:  float

    @property
    def total(self) -> int:
        """Rounded mean of the three components, clamped to 0..5."""
        mean = (self.price_score + self.distance_score + self.arrival_score) / 3
        return int(clamp(round_half_up(mean), 0, MAX_SCORE))


def _monthly_price_means(
    records: Sequence[MarketRecord],
    attr:    str,
) -> list[float]:
    positives = [getattr(r, attr) for r in records if getattr(r, attr) > 0]
    fallback = fmean(positives) if positives else 0.0
    return monthly_averages(
        records, lambda r: getattr(r, attr), fallback=fallback, positive_only=True,
    )


def compute_market_stats(records: Sequence[MarketRecord]) -> Optional[MarketStats]:
    """Price statistics for one market group.

    Args:
        records: All records of one (state, district, market) for one variety.

    Returns:
        ``MarketStats``, or ``None`` for an empty group.
    """
    if not records:
        return None

    monthly_max = _monthly_price_means(records, "max_price")
    monthly_min = _monthly_price_means(records, "min_price")

    high_avg, high_month = 0.0, None
    for month, avg in zip(MONTHS, monthly_max):
        if avg > high_avg:
            high_avg, high_month = avg, month

    low_avg, low_month = float("inf"), None
    for month, avg in zip(MONTHS, monthly_min):
        if 0 < avg < low_avg:
            low_avg, low_month = avg, month

    first = records[0]
    return MarketStats(
        state=first.state,
        district=first.district,
        market=first.market,
        high_price=round_half_up(high_avg),
        high_price_month=high_month,
        low_price=0 if low_month is None else round_half_up(low_avg),
        low_price_month=low_month,
        arrivals_avg=fmean(r.arrivals_tonnes for r in records),
        record_count=len(records),
        latest_reported_date=max(r.reported_date for r in records),
    )


def cost_per_km(vehicle: Optional[VehicleInfo]) -> float:
    """Fuel cost per kilometre; 0 without a vehicle or with zero mileage."""
    if vehicle is None or vehicle.mileage_km_per_liter == 0:
        return 0.0
    return vehicle.fuel_price_per_liter / vehicle.mileage_km_per_liter


def transport_cost(per_km: float, distance_km: Optional[float]) -> int:
    """Rounded cost to reach a market; 0 when either input is unknown or 0."""
    if per_km == 0 or distance_km is None:
        return 0
    return round_half_up(per_km * distance_km)


def distance_score(distance_km: Optional[float]) -> float:
    if distance_km is None:
        return _FAR_DISTANCE_SCORE
    for bound, score in _DISTANCE_TIERS:
        if distance_km < bound:
            return score
    return _FAR_DISTANCE_SCORE


def arrival_score(arrivals_avg: float) -> float:
    return min(arrivals_avg / ARRIVAL_SCORE_DIVISOR, ARRIVAL_SCORE_CAP)


def compute_score(
    high_price:   float,
    distance_km:  Optional[float],
    arrivals_avg: float,
) -> ScoreComponents:
    """Score components for one candidate market.

    Args:
        high_price:   Rounded seasonal high price.
        distance_km:  Distance from the producer, ``None`` if unknown.
        arrivals_avg: Mean arrivals in tonnes.

    Returns:
        ``ScoreComponents``; ``.total`` is the 0–5 score.
    """
    return ScoreComponents(
        price_score=high_price / PRICE_SCORE_DIVISOR,
        distance_score=distance_score(distance_km),
        arrival_score=arrival_score(arrivals_avg),
    )
