"""
Seasonal price analysis: per-calendar-month averages and a normalized index.

Formula
-------
For the records ``R`` of one variety:

    raw_mean         = mean(modal_price over all of R)
    monthly_mean[m]  = mean(modal_price over R in month m)   or raw_mean if none
    overall_avg      = mean(monthly_mean[1..12])              # mean of means
    price_index[m]   = monthly_mean[m] / overall_avg

``overall_avg`` is deliberately a mean of the twelve monthly means rather
than a record-weighted mean, so every month carries equal weight in the index
no matter how many reports it had.

Selling recommendation
----------------------
    price_index >= 1.15  → "excellent"
    price_index >= 1.05  → "good"
    price_index >= 0.95  → "average"
    otherwise            → "poor"

Missing months
--------------
A month with no observations takes the fallback value, so every query with at
least one record yields exactly twelve patterns.  A variety with no records
yields an empty list.
"""

from __future__ import annotations

from collections import defaultdict
from statistics import fmean
from typing import Callable, Optional, Sequence

from mandi_intel.models.analysis import SeasonalPattern, SellingRecommendation
from mandi_intel.models.record import MarketRecord
from mandi_intel.store.index import MarketIndex
from mandi_intel.utils.numbers import round_half_up
from mandi_intel.utils.time_utils import MONTHS

# (threshold, label); the first threshold the index reaches wins.
_RECOMMENDATION_THRESHOLDS: tuple[tuple[float, SellingRecommendation], ...] = (
    (1.15, "excellent"),
    (1.05, "good"),
    (0.95, "average"),
)


def monthly_averages(
    records:       Sequence[MarketRecord],
    value_of:      Callable[[MarketRecord], float],
    fallback:      float,
    positive_only: bool = False,
) -> list[float]:
    """Mean of ``value_of(record)`` per calendar month, with a fallback.

    Args:
        records:       Records to bucket by ``reported_date.month``.
        value_of:      Extracts the price to average from a record.
        fallback:      Value for months without any (eligible) observation.
        positive_only: If ``True``, values ``<= 0`` are ignored.

    Returns:
        Twelve floats; index 0 is January.
    """
    buckets: dict[int, list[float]] = defaultdict(list)
    for rec in records:
        value = value_of(rec)
        if positive_only and value <= 0:
            continue
        buckets[rec.reported_date.month].append(value)

    return [fmean(buckets[m]) if buckets.get(m) else fallback for m in MONTHS]


def monthly_modal_means(records: Sequence[MarketRecord]) -> list[float]:
    """Twelve monthly mean modal prices, falling back to the overall mean.

    Returns an empty list when ``records`` is empty.
    """
    if not records:
        return []
    raw_mean = fmean(r.modal_price for r in records)
    return monthly_averages(records, lambda r: r.modal_price, fallback=raw_mean)


def classify_price_index(price_index: float) -> SellingRecommendation:
    """Map a price index to a selling recommendation."""
    for threshold, label in _RECOMMENDATION_THRESHOLDS:
        if price_index >= threshold:
            return label
    return "poor"


def compute_seasonal_patterns(records: Sequence[MarketRecord]) -> list[SeasonalPattern]:
    """Build the twelve ``SeasonalPattern`` entries for a set of records.

    Args:
        records: Records of a single variety.

    Returns:
        Twelve patterns in calendar order, or ``[]`` for no records.
    """
    means = monthly_modal_means(records)
    if not means:
        return []

    overall_avg = fmean(means)

    patterns: list[SeasonalPattern] = []
    for month, mean_price in zip(MONTHS, means):
        price_index = mean_price / overall_avg
        patterns.append(
            SeasonalPattern(
                month=month,
                average_price=round_half_up(mean_price),
                price_index=price_index,
                recommendation=classify_price_index(price_index),
            )
        )
    return patterns


def seasonal_patterns(index: MarketIndex, variety: str) -> list[SeasonalPattern]:
    """Seasonal patterns for ``variety`` from the index (``[]`` if unknown)."""
    return compute_seasonal_patterns(index.records_for_variety(variety))


def best_selling_month(patterns: Sequence[SeasonalPattern]) -> Optional[SeasonalPattern]:
    """The pattern with the highest price index; earliest month wins ties."""
    best: Optional[SeasonalPattern] = None
    for pattern in patterns:
        if best is None or pattern.price_index > best.price_index:
            best = pattern
    return best
