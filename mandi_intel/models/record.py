"""
Commodity price record — one row of a market price table.

``MarketRecord`` is frozen (immutable) once parsed.  Records that fail the
indexability rule (non-positive modal price or a blank state / district /
market) may still be constructed, but ``MarketIndex`` never admits them.

Prices are per quintal in the source currency; arrivals are in tonnes.
"""

from __future__ import annotations

import math
from datetime import date

from pydantic import BaseModel, ConfigDict, field_validator

# Reserved variety name the source uses for unclassified produce.
OTHER_VARIETY = "Other"


class MarketRecord(BaseModel):
    """A single daily price report for one variety at one market.

    Attributes:
        state: State the market is in.
        district: District the market is in.
        market: Market (mandi) name as reported, possibly with a
            parenthetical qualifier such as ``"(Sub Yard)"``.
        variety: Commodity variety — the primary grouping key.
        group: Commodity group (e.g. ``"Vegetables"``).
        arrivals_tonnes: Quantity arriving at the market that day.
        min_price: Lowest transaction price reported.
        max_price: Highest transaction price reported.
        modal_price: Most frequently reported transaction price.
        reported_date: Calendar date of the report.
    """

    model_config = ConfigDict(frozen=True)

    state: str
    district: str
    market: str
    variety: str
    group: str = ""
    arrivals_tonnes: float = 0.0
    min_price: float = 0.0
    max_price: float = 0.0
    modal_price: float
    reported_date: date

    @field_validator("arrivals_tonnes", "min_price", "max_price", "modal_price")
    @classmethod
    def validate_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError(f"Numeric fields must be finite, got {v}.")
        return v

    @property
    def is_indexable(self) -> bool:
        """``True`` if this record may enter the index."""
        return (
            self.modal_price > 0
            and bool(self.state)
            and bool(self.district)
            and bool(self.market)
        )

    @property
    def market_key(self) -> tuple[str, str, str]:
        """``(state, district, market)`` — the market grouping key."""
        return (self.state, self.district, self.market)
