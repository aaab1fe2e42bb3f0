"""
Recommendation report models.

``MarketSummaryContext`` is the structured input handed to the narrative
suggester; it carries only what the prompt needs so the suggester never
touches the index.

``MarketRecommendationReport`` bundles everything one ranking request
produces.  The narrative fields are optional enrichment: a report with
``narrative=None`` is complete.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mandi_intel.models.analysis import SeasonalPattern
from mandi_intel.models.market import ScoredMarket


class MarketSummaryContext(BaseModel):
    """Input to ``NarrativeSuggester.summarize()``.

    Attributes:
        variety: Commodity variety the advice is for.
        location_state: Producer's state, or ``None`` if unknown.
        top_markets: Best overall markets, in rank order.
        top_state_markets: Best markets inside ``location_state``.
        seasonal_patterns: Twelve monthly patterns (may be empty).
    """

    model_config = ConfigDict(frozen=True)

    variety: str
    location_state: Optional[str] = None
    top_markets: list[ScoredMarket] = Field(default_factory=list)
    top_state_markets: list[ScoredMarket] = Field(default_factory=list)
    seasonal_patterns: list[SeasonalPattern] = Field(default_factory=list)


class MarketRecommendationReport(BaseModel):
    """Result of one ranking request.

    Attributes:
        variety: Commodity variety ranked.
        markets: Ranked candidate markets (state partition, then high price).
        state_markets: Best markets within the producer's state.
        seasonal_patterns: Twelve monthly patterns for the variety.
        narrative: Free-text advice, or ``None`` when no suggester is set up.
        narrative_is_fallback: ``True`` when ``narrative`` was generated
            locally because the suggestion service failed.
        generated_at: UTC timestamp of report creation.
    """

    model_config = ConfigDict(frozen=True)

    variety: str
    markets: list[ScoredMarket] = Field(default_factory=list)
    state_markets: list[ScoredMarket] = Field(default_factory=list)
    seasonal_patterns: list[SeasonalPattern] = Field(default_factory=list)
    narrative: Optional[str] = None
    narrative_is_fallback: bool = False
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
