"""
Market ranker: groups a variety's records by market, turns each group into a
``ScoredMarket``, and orders the candidates.

Usage flow
----------
1. build_scored_markets(records)
   -> list[ScoredMarket]  (one per market with a positive high price,
                           scored with distance unknown)

2. rank_markets(markets, reference_state)
   -> list[ScoredMarket]  (state partition, then high price descending)

3. apply_distances(markets, distances, vehicle)
   -> list[ScoredMarket]  (distance, transport cost and score filled in;
                           order unchanged)

Ordering
--------
With a reference state, every market in that state precedes every market
outside it, whatever their prices.  Within each partition markets are sorted
by ``high_price`` descending; equal prices keep first-appearance order.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from mandi_intel.models.market import ScoredMarket, VehicleInfo
from mandi_intel.models.record import MarketRecord
from mandi_intel.recommendations.scorer import (
    compute_market_stats,
    compute_score,
    cost_per_km,
    transport_cost,
)
from mandi_intel.store.index import MarketIndex

logger = logging.getLogger(__name__)

DEFAULT_LIMIT       = 5
DEFAULT_STATE_LIMIT = 3


def group_by_market(
    records: Sequence[MarketRecord],
) -> dict[tuple[str, str, str], list[MarketRecord]]:
    """Group records by ``(state, district, market)`` in first-appearance order."""
    groups: dict[tuple[str, str, str], list[MarketRecord]] = {}
    for rec in records:
        groups.setdefault(rec.market_key, []).append(rec)
    return groups


def build_scored_markets(records: Sequence[MarketRecord]) -> list[ScoredMarket]:
    """One ``ScoredMarket`` per market group with a positive high price.

    Args:
        records: Records of one variety (any number of markets).

    Returns:
        Candidates in first-appearance order, scored with an unknown
        distance and zero transport cost.
    """
    markets: list[ScoredMarket] = []
    dropped = 0

    for group in group_by_market(records).values():
        stats = compute_market_stats(group)
        if stats is None or stats.high_price <= 0:
            dropped += 1
            continue

        markets.append(
            ScoredMarket(
                state=stats.state,
                district=stats.district,
                market=stats.market,
                high_price=stats.high_price,
                high_price_month=stats.high_price_month,
                low_price=stats.low_price,
                low_price_month=stats.low_price_month,
                arrivals_avg=stats.arrivals_avg,
                distance_km=None,
                transport_cost=0,
                score=compute_score(stats.high_price, None, stats.arrivals_avg).total,
                record_count=stats.record_count,
                latest_reported_date=stats.latest_reported_date,
            )
        )

    if dropped:
        logger.debug("Dropped %d market(s) without a positive high price", dropped)
    return markets


def rank_markets(
    markets:         Sequence[ScoredMarket],
    reference_state: Optional[str] = None,
) -> list[ScoredMarket]:
    """Order candidates: reference-state partition first, then high price."""
    def _key(m: ScoredMarket) -> tuple[int, float]:
        in_state = bool(reference_state) and m.state == reference_state
        return (0 if in_state else 1, -m.high_price)

    return sorted(markets, key=_key)


def _check_limit(limit: int) -> None:
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}.")


def best_markets(
    index:           MarketIndex,
    variety:         str,
    reference_state: Optional[str] = None,
    market:          Optional[str] = None,
    limit:           int = DEFAULT_LIMIT,
) -> list[ScoredMarket]:
    """Top ``limit`` markets for ``variety``.

    Args:
        index:           Record index to query.
        variety:         Variety to rank.
        reference_state: Producer's state; its markets come first.
        market:          If given, only markets with exactly this name.
        limit:           Maximum number of results.

    Returns:
        Ranked markets; empty for an unknown variety.

    Raises:
        ValueError: If ``limit`` is negative.
    """
    _check_limit(limit)
    records = index.records_for_variety(variety)
    if market:
        records = tuple(r for r in records if r.market == market)
    ranked = rank_markets(build_scored_markets(records), reference_state)
    return ranked[:limit]


def best_state_markets(
    index:   MarketIndex,
    variety: str,
    state:   str,
    limit:   int = DEFAULT_STATE_LIMIT,
) -> list[ScoredMarket]:
    """Top ``limit`` markets of ``variety`` inside ``state`` by high price."""
    _check_limit(limit)
    records = [r for r in index.records_for_variety(variety) if r.state == state]
    return rank_markets(build_scored_markets(records))[:limit]


def apply_distances(
    markets:   Sequence[ScoredMarket],
    distances: Sequence[Optional[float]],
    vehicle:   Optional[VehicleInfo] = None,
) -> list[ScoredMarket]:
    """Attach distance, transport cost and final score to each market.

    Args:
        markets:   Ranked candidates.
        distances: One distance per market (``None`` = unknown).
        vehicle:   Vehicle economics; ``None`` → zero transport cost.

    Returns:
        New ``ScoredMarket`` instances in the same order.

    Raises:
        ValueError: If the two sequences differ in length.
    """
    if len(markets) != len(distances):
        raise ValueError(
            f"Got {len(distances)} distance(s) for {len(markets)} market(s)."
        )

    per_km = cost_per_km(vehicle)
    return [
        m.model_copy(update={
            "distance_km":    d,
            "transport_cost": transport_cost(per_km, d),
            "score":          compute_score(m.high_price, d, m.arrivals_avg).total,
        })
        for m, d in zip(markets, distances)
    ]
