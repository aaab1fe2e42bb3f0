"""
Read-only lookup structures over parsed price records.

``MarketIndex`` is an explicit value: the caller builds it (``MarketIndex.build``)
and hands it to whoever needs it.  There is no module-level index; a reload
means building a new ``MarketIndex`` and swapping the reference.

Structures (derived in one pass over the records)
--------------------------------------------------
  state            → frozenset(district)
  (state, district) → frozenset(market)
  variety          → tuple(MarketRecord)   (source order preserved)

Records with a non-positive modal price or a blank state / district / market
never enter the index.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from mandi_intel.models.record import OTHER_VARIETY, MarketRecord

logger = logging.getLogger(__name__)


class MarketIndex:
    """Immutable index of commodity price records.

    Use ``MarketIndex.build(records)``; the constructor takes the already
    frozen mappings and is not meant to be called directly.
    """

    __slots__ = ("_records", "_districts", "_markets", "_by_variety")

    def __init__(
        self,
        records: tuple[MarketRecord, ...],
        districts: Mapping[str, frozenset[str]],
        markets: Mapping[tuple[str, str], frozenset[str]],
        by_variety: Mapping[str, tuple[MarketRecord, ...]],
    ) -> None:
        self._records    = records
        self._districts  = MappingProxyType(dict(districts))
        self._markets    = MappingProxyType(dict(markets))
        self._by_variety = MappingProxyType(dict(by_variety))

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def build(cls, records: Iterable[MarketRecord]) -> "MarketIndex":
        """Build an index from parsed records in a single pass.

        Args:
            records: Parsed records; non-indexable ones are dropped.

        Returns:
            A new, read-only ``MarketIndex``.
        """
        kept: list[MarketRecord] = []
        districts: dict[str, set[str]] = defaultdict(set)
        markets: dict[tuple[str, str], set[str]] = defaultdict(set)
        by_variety: dict[str, list[MarketRecord]] = defaultdict(list)
        excluded = 0

        for rec in records:
            if not rec.is_indexable:
                excluded += 1
                continue
            kept.append(rec)
            districts[rec.state].add(rec.district)
            markets[(rec.state, rec.district)].add(rec.market)
            by_variety[rec.variety].append(rec)

        if excluded:
            logger.debug(
                "Excluded %d record(s) with non-positive modal price or blank location",
                excluded,
            )
        logger.info(
            "Index built: %d records, %d states, %d varieties",
            len(kept), len(districts), len(by_variety),
        )

        return cls(
            records=tuple(kept),
            districts={k: frozenset(v) for k, v in districts.items()},
            markets={k: frozenset(v) for k, v in markets.items()},
            by_variety={k: tuple(v) for k, v in by_variety.items()},
        )

    # ── Listing queries ───────────────────────────────────────────────────────

    def list_states(self) -> list[str]:
        """All states, sorted."""
        return sorted(self._districts)

    def list_districts(self, state: str) -> list[str]:
        """Districts of ``state``, sorted; empty for an unknown state."""
        return sorted(self._districts.get(state, ()))

    def list_markets(self, state: str, district: str) -> list[str]:
        """Markets of ``(state, district)``, sorted; empty if unknown."""
        return sorted(self._markets.get((state, district), ()))

    def list_varieties(self) -> list[str]:
        """All varieties except blank names and the ``"Other"`` sentinel, sorted."""
        return sorted(v for v in self._by_variety if v and v != OTHER_VARIETY)

    # ── Record queries ────────────────────────────────────────────────────────

    def records_for_variety(self, variety: str) -> tuple[MarketRecord, ...]:
        """Indexed records of ``variety`` (empty tuple if unknown)."""
        return self._by_variety.get(variety, ())

    def filter_records(
        self,
        state: Optional[str] = None,
        district: Optional[str] = None,
        variety: Optional[str] = None,
    ) -> list[MarketRecord]:
        """Records matching every criterion that is given.

        ``None`` or an empty string means "no filter" for that field.
        """
        source: Iterable[MarketRecord] = (
            self.records_for_variety(variety) if variety else self._records
        )
        return [
            r for r in source
            if (not state or r.state == state)
            and (not district or r.district == district)
        ]

    @property
    def record_count(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return (
            f"MarketIndex(records={len(self._records)}, "
            f"states={len(self._districts)}, varieties={len(self._by_variety)})"
        )
