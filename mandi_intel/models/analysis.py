"""
Seasonal analysis and forecast output models.

``SeasonalPattern`` describes one calendar month of a variety's price cycle;
a seasonal query always yields exactly twelve of them.

``PriceForecast`` is one step of a month-by-month price projection.

Both models are frozen — outputs are computed fresh per query and never
mutated afterwards.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from mandi_intel.utils.time_utils import month_name

SellingRecommendation = Literal["excellent", "good", "average", "poor"]
Trend = Literal["up", "down", "stable"]


class SeasonalPattern(BaseModel):
    """Average price and normalized price index for one calendar month.

    Attributes:
        month: Calendar month, 1 (January) … 12 (December).
        average_price: Mean modal price for the month, rounded to a whole
            number (falls back to the variety-wide mean for empty months).
        price_index: ``monthly mean / mean of the 12 monthly means``.
        recommendation: Selling attractiveness derived from ``price_index``.
    """

    model_config = ConfigDict(frozen=True)

    month: int
    average_price: float
    price_index: float
    recommendation: SellingRecommendation

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: int) -> int:
        if not 1 <= v <= 12:
            raise ValueError(f"month must be in 1..12, got {v}.")
        return v

    @property
    def month_name(self) -> str:
        return month_name(self.month)


class PriceForecast(BaseModel):
    """One month of a projected price trajectory.

    Attributes:
        date: Target month as ``"YYYY-MM"``.
        predicted_price: Projected modal price, rounded to a whole number.
        confidence: Confidence in ``[0.6, 1.0]``; decays with distance.
        trend: Direction of ``predicted_price`` relative to the baseline.
    """

    model_config = ConfigDict(frozen=True)

    date: str
    predicted_price: float
    confidence: float
    trend: Trend

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {v}.")
        return v
