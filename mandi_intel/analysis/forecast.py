"""
Month-by-month price projection for one variety.

How it works
------------
1.  ``monthly_mean`` — the twelve seasonal means from ``seasonal.monthly_modal_means``.
2.  ``baseline`` — mean modal price of the most recent ``baseline_window``
    records (default 30) after a stable chronological sort, regardless of
    which months they fall in.
3.  For step ``i`` in ``[0, N)`` the target month is the reference month + i:

        seasonal_multiplier = monthly_mean[target_month] / baseline
        trend_factor        ~ Uniform(0.95, 1.05)
        predicted_price     = round(baseline × seasonal_multiplier × trend_factor)
        confidence          = max(0.6, 1 − 0.05 × i)
        trend               = up | down | stable   (predicted_price vs baseline)

The trend always compares against ``baseline``, never against the previous
step.

Randomness
----------
``trend_factor`` is short-term noise, so forecasts differ run to run by
default.  Pass a seeded ``random.Random`` (or ``seed=``) for reproducible
output; ``forecast.random_seed`` in config does the same from the CLI.
"""

from __future__ import annotations

import logging
import random
from datetime import date
from statistics import fmean
from typing import Optional, Sequence

from mandi_intel.analysis.seasonal import monthly_modal_means
from mandi_intel.models.analysis import PriceForecast, Trend
from mandi_intel.models.record import MarketRecord
from mandi_intel.store.index import MarketIndex
from mandi_intel.utils.numbers import round_half_up
from mandi_intel.utils.time_utils import add_months, year_month_label

logger = logging.getLogger(__name__)

TREND_FACTOR_LOW   = 0.95
TREND_FACTOR_HIGH  = 1.05
CONFIDENCE_FLOOR   = 0.6
CONFIDENCE_DECAY   = 0.05
DEFAULT_BASELINE_WINDOW = 30


def forecast_confidence(step: int) -> float:
    """Confidence for forecast step ``step`` (0-based): linear decay, floored."""
    return max(CONFIDENCE_FLOOR, 1.0 - CONFIDENCE_DECAY * step)


def recent_baseline(
    records: Sequence[MarketRecord],
    window:  int = DEFAULT_BASELINE_WINDOW,
) -> Optional[float]:
    """Mean modal price of the ``window`` most recent records, or ``None``."""
    if not records:
        return None
    ordered = sorted(records, key=lambda r: r.reported_date)
    return fmean(r.modal_price for r in ordered[-window:])


def classify_trend(predicted_price: float, baseline: float) -> Trend:
    if predicted_price > baseline:
        return "up"
    if predicted_price < baseline:
        return "down"
    return "stable"


class PriceForecaster:
    """Seasonal price forecaster with an injectable random source.

    Attributes:
        rng:             Random source for the trend factor.
        baseline_window: Number of most recent records in the baseline.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        baseline_window: int = DEFAULT_BASELINE_WINDOW,
    ) -> None:
        """Create a forecaster.

        Args:
            rng:             Explicit random source; wins over ``seed``.
            seed:            Seed for a private ``random.Random`` when ``rng``
                             is not given.  ``None`` → unseeded.
            baseline_window: Records averaged into the baseline (>= 1).

        Raises:
            ValueError: If ``baseline_window`` is less than 1.
        """
        if baseline_window < 1:
            raise ValueError(f"baseline_window must be >= 1, got {baseline_window}.")
        self.rng = rng if rng is not None else random.Random(seed)
        self.baseline_window = baseline_window

    def forecast_records(
        self,
        records: Sequence[MarketRecord],
        months:  int,
        today:   Optional[date] = None,
    ) -> list[PriceForecast]:
        """Project ``months`` monthly prices from one variety's records.

        Args:
            records: Records of a single variety.
            months:  Horizon N (number of monthly steps).
            today:   Reference date; its month is step 0.  Defaults to today.

        Returns:
            ``months`` forecasts in chronological order, or ``[]`` when there
            are no records.

        Raises:
            ValueError: If ``months`` is negative.
        """
        if months < 0:
            raise ValueError(f"Forecast horizon must be non-negative, got {months}.")

        baseline = recent_baseline(records, self.baseline_window)
        if baseline is None or months == 0:
            return []

        monthly_mean = monthly_modal_means(records)
        start = today or date.today()

        forecasts: list[PriceForecast] = []
        for step in range(months):
            year, month = add_months(start, step)
            seasonal_multiplier = monthly_mean[month - 1] / baseline
            trend_factor = self.rng.uniform(TREND_FACTOR_LOW, TREND_FACTOR_HIGH)
            predicted = round_half_up(baseline * seasonal_multiplier * trend_factor)

            forecasts.append(
                PriceForecast(
                    date=year_month_label(year, month),
                    predicted_price=predicted,
                    confidence=forecast_confidence(step),
                    trend=classify_trend(predicted, baseline),
                )
            )

        logger.debug(
            "Forecast %d month(s) from %d records (baseline %.2f)",
            months, len(records), baseline,
        )
        return forecasts

    def forecast(
        self,
        index:   MarketIndex,
        variety: str,
        months:  int,
        today:   Optional[date] = None,
    ) -> list[PriceForecast]:
        """Forecast ``variety`` from the index; unknown variety → ``[]``."""
        return self.forecast_records(index.records_for_variety(variety), months, today)
