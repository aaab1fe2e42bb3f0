"""
Market intelligence engine: the single façade over index, analysis, distance
resolution and ranking.

Lifecycle
---------
    engine = MarketIntelligenceEngine.from_config(load_config())
    engine.list_varieties()
    engine.seasonal_patterns("Potato")
    engine.forecast("Potato", months=6)
    report = asyncio.run(engine.recommend("Potato", user_location=loc))
    engine.reload()          # re-read sources, swap in a fresh index

The engine owns no module-level state.  The index is replaced wholesale on
``reload()``; queries already holding the old index keep a consistent view.

Only ``recommend`` is asynchronous: it geocodes the top candidates
concurrently and optionally asks the narrative service for advice.  Every
other query is a synchronous computation over the immutable index.
"""

from __future__ import annotations

import logging
import random
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from mandi_intel.analysis.forecast import PriceForecaster
from mandi_intel.analysis.seasonal import seasonal_patterns
from mandi_intel.config import AppConfig
from mandi_intel.geo.cache import GeoCache, build_geo_cache
from mandi_intel.geo.client import NominatimGeocoder
from mandi_intel.geo.distance import DistanceResolver, heuristic_distance_km
from mandi_intel.ingestion.record_csv import discover_record_files, load_market_records
from mandi_intel.models.analysis import PriceForecast, SeasonalPattern
from mandi_intel.models.market import ScoredMarket, UserLocation, VehicleInfo
from mandi_intel.models.report import MarketRecommendationReport, MarketSummaryContext
from mandi_intel.recommendations.narrative import (
    NarrativeSuggester,
    build_narrative_suggester,
    suggest_narrative,
)
from mandi_intel.recommendations.ranker import (
    apply_distances,
    best_markets,
    best_state_markets,
)
from mandi_intel.store.index import MarketIndex

logger = logging.getLogger(__name__)


class MarketIntelligenceEngine:
    """Query and ranking façade over a ``MarketIndex``.

    Args:
        index:             Index to query.
        config:            Application configuration (defaults if omitted).
        sources:           Price-table files ``reload()`` re-reads.
        distance_resolver: Pre-built resolver; when omitted ``recommend``
                           opens a ``NominatimGeocoder`` per call if
                           geocoding is enabled.
        geo_cache:         Cache shared by the per-call resolvers.
        narrator:          Narrative suggester; when omitted one is built
                           from ``config.narrative`` (``None`` without an
                           API key).
        rng:               Random source for forecasts.
    """

    def __init__(
        self,
        index:             MarketIndex,
        config:            Optional[AppConfig] = None,
        sources:           Sequence[Path] = (),
        distance_resolver: Optional[DistanceResolver] = None,
        geo_cache:         Optional[GeoCache] = None,
        narrator:          Optional[NarrativeSuggester] = None,
        rng:               Optional[random.Random] = None,
    ) -> None:
        self.config   = config or AppConfig()
        self.sources  = [Path(p) for p in sources]
        self._index   = index
        self._distance_resolver = distance_resolver
        self._geo_cache = geo_cache if geo_cache is not None else build_geo_cache(self.config.geocoding)
        self._narrator  = narrator
        self._forecaster = PriceForecaster(
            rng=rng,
            seed=self.config.forecast.random_seed,
            baseline_window=self.config.forecast.baseline_window,
        )

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def from_sources(
        cls,
        paths:  Sequence[Path],
        config: Optional[AppConfig] = None,
        **kwargs,
    ) -> "MarketIntelligenceEngine":
        """Load ``paths`` and build an engine over them.

        Raises:
            DataLoadError: If no usable record comes back from any file.
        """
        paths = [Path(p) for p in paths]
        index = MarketIndex.build(load_market_records(paths))
        return cls(index, config=config, sources=paths, **kwargs)

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs) -> "MarketIntelligenceEngine":
        """Load every price table under ``config.data.data_dir``.

        Raises:
            DataLoadError: If the directory holds no usable records.
        """
        paths = discover_record_files(Path(config.data.data_dir), config.data.file_glob)
        logger.info("Found %d price table(s) in %s", len(paths), config.data.data_dir)
        return cls.from_sources(paths, config=config, **kwargs)

    def reload(self) -> MarketIndex:
        """Re-read ``sources`` and swap in a freshly built index.

        The current index stays in place if loading fails.

        Raises:
            ValueError:    If the engine was built without sources.
            DataLoadError: If the sources no longer yield usable records.
        """
        if not self.sources:
            raise ValueError("Engine has no sources to reload from.")
        index = MarketIndex.build(load_market_records(self.sources))
        self._index = index
        logger.info("Index reloaded: %r", index)
        return index

    @property
    def index(self) -> MarketIndex:
        return self._index

    # ── Listing ───────────────────────────────────────────────────────────────

    def list_states(self) -> list[str]:
        return self._index.list_states()

    def list_districts(self, state: str) -> list[str]:
        return self._index.list_districts(state)

    def list_markets(self, state: str, district: str) -> list[str]:
        return self._index.list_markets(state, district)

    def list_varieties(self) -> list[str]:
        return self._index.list_varieties()

    # ── Analysis ──────────────────────────────────────────────────────────────

    def seasonal_patterns(self, variety: str) -> list[SeasonalPattern]:
        return seasonal_patterns(self._index, variety)

    def forecast(
        self,
        variety: str,
        months:  Optional[int] = None,
        today:   Optional[date] = None,
    ) -> list[PriceForecast]:
        """Forecast ``variety``; ``months`` defaults to ``forecast.horizon_months``."""
        if months is None:
            months = self.config.forecast.horizon_months
        return self._forecaster.forecast(self._index, variety, months, today)

    # ── Ranking ───────────────────────────────────────────────────────────────

    def best_markets(
        self,
        variety:         str,
        reference_state: Optional[str] = None,
        market:          Optional[str] = None,
        limit:           Optional[int] = None,
    ) -> list[ScoredMarket]:
        if limit is None:
            limit = self.config.ranking.limit
        return best_markets(self._index, variety, reference_state, market, limit)

    def best_state_markets(
        self,
        variety: str,
        state:   str,
        limit:   Optional[int] = None,
    ) -> list[ScoredMarket]:
        if limit is None:
            limit = self.config.ranking.state_limit
        return best_state_markets(self._index, variety, state, limit)

    async def recommend(
        self,
        variety:           str,
        user_location:     Optional[UserLocation] = None,
        vehicle:           Optional[VehicleInfo] = None,
        market:            Optional[str] = None,
        limit:             Optional[int] = None,
        include_narrative: bool = True,
        reference_state:   Optional[str] = None,
    ) -> MarketRecommendationReport:
        """Rank markets for ``variety`` with distances and optional advice.

        Args:
            variety:           Variety to rank.
            user_location:     Producer location; enables distances and
                               state priority.  ``None`` → distances unknown.
            reference_state:   State given priority; defaults to
                               ``user_location.state``.
            vehicle:           Vehicle economics; defaults to ``config.transport``.
            market:            Exact market-name filter.
            limit:             Number of ranked markets (``ranking.limit``).
            include_narrative: Ask the narrative service for advice.

        Returns:
            ``MarketRecommendationReport``.  An unknown variety gives a report
            with empty collections.
        """
        if reference_state is None and user_location is not None:
            reference_state = user_location.state
        if vehicle is None:
            vehicle = VehicleInfo(
                fuel_price_per_liter=self.config.transport.fuel_price_per_liter,
                mileage_km_per_liter=self.config.transport.mileage_km_per_liter,
            )

        ranked = self.best_markets(variety, reference_state, market, limit)
        distances = await self._resolve_distances(ranked, user_location)
        markets = apply_distances(ranked, distances, vehicle)

        state_markets = (
            self.best_state_markets(variety, reference_state) if reference_state else []
        )
        patterns = self.seasonal_patterns(variety)

        narrative: Optional[str] = None
        is_fallback = False
        if include_narrative and markets:
            narrator = self._narrator or build_narrative_suggester(self.config.narrative)
            context = MarketSummaryContext(
                variety=variety,
                location_state=reference_state,
                top_markets=markets,
                top_state_markets=state_markets,
                seasonal_patterns=patterns,
            )
            narrative, is_fallback = await suggest_narrative(
                narrator, context, timeout_s=self.config.narrative.timeout_s,
            )

        logger.info(
            "Ranked %d market(s) for %s (%d in state %s)",
            len(markets), variety, len(state_markets), reference_state or "-",
        )
        return MarketRecommendationReport(
            variety=variety,
            markets=markets,
            state_markets=state_markets,
            seasonal_patterns=patterns,
            narrative=narrative,
            narrative_is_fallback=is_fallback,
        )

    async def _resolve_distances(
        self,
        markets:       Sequence[ScoredMarket],
        user_location: Optional[UserLocation],
    ) -> list[Optional[float]]:
        """Distances for ``markets``; only the first ``distance_top_k`` are looked up."""
        if user_location is None or not markets:
            return [None] * len(markets)

        top_k = self.config.ranking.distance_top_k
        head, tail = list(markets[:top_k]), markets[top_k:]

        if self._distance_resolver is not None:
            resolved = await self._distance_resolver.resolve_many(head, user_location)
        elif self.config.geocoding.enabled:
            async with NominatimGeocoder(self.config.geocoding) as geocoder:
                resolver = DistanceResolver(
                    geocoder, self._geo_cache, timeout_s=self.config.geocoding.timeout_s,
                )
                resolved = await resolver.resolve_many(head, user_location)
        else:
            resolved = [heuristic_distance_km(m, user_location) for m in head]

        return [*resolved, *([None] * len(tail))]
