"""
Ranking report writer: CSV and JSON output for one recommendation run.

All functions are pure I/O.  Files are output only; nothing in the engine
reads them back.

Output files
------------
  data/outputs/
    ranking_{variety}_{date}.csv   -- ranked markets, one row each
    report_{variety}_{date}.json   -- full MarketRecommendationReport
"""

from __future__ import annotations

import csv
import json
import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from mandi_intel.models.market import ScoredMarket
from mandi_intel.models.report import MarketRecommendationReport

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "v1"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")

RANKING_FIELDNAMES = [
    "rank", "state", "district", "market",
    "high_price", "high_price_month", "low_price", "low_price_month",
    "arrivals_avg", "distance_km", "transport_cost", "score",
    "record_count", "latest_reported_date",
]


def _slug(text: str) -> str:
    """Filesystem-safe form of a variety name."""
    return _UNSAFE_FILENAME_CHARS.sub("_", text.strip()).strip("_").lower() or "variety"


def write_ranking_csv(
    markets:    Sequence[ScoredMarket],
    output_dir: Path,
    variety:    str,
    run_date:   Optional[date] = None,
) -> Path:
    """Write ranked markets to a CSV file.

    Args:
        markets:    Ranked markets, best first.
        output_dir: Directory to write the file (created if missing).
        variety:    Variety name (used in the filename).
        run_date:   Date label for the filename. Defaults to today.

    Returns:
        Path to the written CSV file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / f"ranking_{_slug(variety)}_{run_date}.csv"

    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=RANKING_FIELDNAMES)
        writer.writeheader()
        for rank, m in enumerate(markets, start=1):
            writer.writerow(
                {
                    "rank":                 rank,
                    "state":                m.state,
                    "district":             m.district,
                    "market":               m.market,
                    "high_price":           m.high_price,
                    "high_price_month":     m.high_price_month_abbr,
                    "low_price":            m.low_price,
                    "low_price_month":      m.low_price_month_abbr,
                    "arrivals_avg":         round(m.arrivals_avg, 2),
                    "distance_km":          "" if m.distance_km is None else round(m.distance_km, 1),
                    "transport_cost":       m.transport_cost,
                    "score":                m.score,
                    "record_count":         m.record_count,
                    "latest_reported_date": m.latest_reported_date or "",
                }
            )

    logger.info("Ranking CSV written: %s", csv_path)
    return csv_path


def write_report_json(
    report:     MarketRecommendationReport,
    output_dir: Path,
    run_date:   Optional[date] = None,
) -> Path:
    """Write a full recommendation report to a structured JSON file.

    Args:
        report:     Report to serialise.
        output_dir: Target directory.
        run_date:   Date label. Defaults to today.

    Returns:
        Path to the written JSON file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"report_{_slug(report.variety)}_{run_date}.json"

    payload: dict = {
        "schema_version": SCHEMA_VERSION,
        "run_date":       run_date.isoformat(),
        **report.model_dump(mode="json"),
    }

    json_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Report JSON written: %s", json_path)
    return json_path
