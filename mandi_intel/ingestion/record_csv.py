"""
CSV parser for commodity price tables.

Format — comma delimited, one logical table per commodity file, with a header
row.  Canonical header::

  state,district,market,variety,group,arrivals,minPrice,maxPrice,modalPrice,reportedDate

The Agmarknet export headers are accepted as aliases (``State Name``,
``District Name``, ``Market Name``, ``Arrivals (Tonnes)``,
``Min Price (Rs./Quintal)``, ``Modal Price (Rs./Quintal)``,
``Reported Date`` …).  A header whose names are not recognised but that has
exactly ten columns is read positionally in canonical order.

Fields may be double-quoted to embed literal commas
(``"Siyana (Sub Yard), Old"``).

Row handling
------------
Each line is parsed **independently** — a quote left open on one line never
swallows the next.  A line is skipped with a WARNING (never fatal) when:
  - its field count differs from the header's;
  - a numeric field is non-empty and not a number (locale-invariant ``.``
    decimal point, so ``"1,234"`` is rejected);
  - the date is empty or in none of the accepted formats.

Empty numeric fields read as ``0``.

Date formats:
  ``YYYY-MM-DD``, ``DD-MM-YYYY``, ``DD/MM/YYYY``, ``DD-Mon-YYYY``, ``DD Mon YYYY``
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence

from pydantic import ValidationError

from mandi_intel.exceptions import DataLoadError
from mandi_intel.models.record import MarketRecord

logger = logging.getLogger(__name__)

CANONICAL_COLUMNS: tuple[str, ...] = (
    "state", "district", "market", "variety", "group",
    "arrivals", "minPrice", "maxPrice", "modalPrice", "reportedDate",
)

# Lower-cased header text → canonical column name.
HEADER_ALIASES: dict[str, str] = {
    **{c.lower(): c for c in CANONICAL_COLUMNS},
    "state name":               "state",
    "district name":            "district",
    "market name":              "market",
    "commodity group":          "group",
    "arrivals (tonnes)":        "arrivals",
    "min price (rs./quintal)":  "minPrice",
    "max price (rs./quintal)":  "maxPrice",
    "modal price (rs./quintal)": "modalPrice",
    "reported date":            "reportedDate",
    "arrival_date":             "reportedDate",
    "min_price":                "minPrice",
    "max_price":                "maxPrice",
    "modal_price":              "modalPrice",
}

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%d-%b-%Y",
    "%d %b %Y",
)

_NUMERIC_COLUMNS = ("arrivals", "minPrice", "maxPrice", "modalPrice")


@dataclass
class ParseReport:
    """Row accounting for one parsed source.

    Attributes:
        source:       File name (or ``"<memory>"``) the rows came from.
        rows_read:    Non-blank data lines seen (header excluded).
        rows_parsed:  Lines that became a ``MarketRecord``.
        rows_skipped: Lines rejected with a warning.
    """

    source:       str
    rows_read:    int = 0
    rows_parsed:  int = 0
    rows_skipped: int = 0


class RowParseError(ValueError):
    """A single line could not be turned into a ``MarketRecord``."""


# ── Public API ────────────────────────────────────────────────────────────────

def parse_record_lines(
    lines: Iterable[str],
    source: str = "<memory>",
) -> tuple[list[MarketRecord], ParseReport]:
    """Parse price-table lines (header first) into ``MarketRecord`` objects.

    Args:
        lines:  Text lines; the first non-blank line is the header.
        source: Label used in log messages and the report.

    Returns:
        ``(records, report)``.  Records keep their source order.
    """
    report = ParseReport(source=source)
    records: list[MarketRecord] = []
    positions: Optional[dict[str, int]] = None
    width = 0

    for line_no, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line:
            continue

        if positions is None:
            try:
                header = _split_line(line)
            except RowParseError as exc:
                logger.warning("Unreadable header in %s: %s; ignoring file.", source, exc)
                return [], report
            positions = _resolve_header(header, source)
            if positions is None:
                return [], report
            width = len(header)
            continue

        report.rows_read += 1
        try:
            records.append(_parse_row(_split_line(line), positions, width))
            report.rows_parsed += 1
        except RowParseError as exc:
            report.rows_skipped += 1
            logger.warning("Skipping %s line %d: %s", source, line_no, exc)

    if positions is None:
        logger.warning("Price table %s is empty (no header row).", source)

    return records, report


def parse_record_csv(path: Path) -> tuple[list[MarketRecord], ParseReport]:
    """Parse one price-table file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"Price table not found: {path}")

    with open(path, encoding="utf-8-sig", newline="") as f:
        records, report = parse_record_lines(f, source=path.name)

    logger.info(
        "Parsed %s: %d rows kept, %d skipped",
        path.name, report.rows_parsed, report.rows_skipped,
    )
    return records, report


def discover_record_files(data_dir: Path, pattern: str = "*.csv") -> list[Path]:
    """Return the price-table files under ``data_dir``, sorted by name."""
    if not data_dir.is_dir():
        logger.warning("Data directory does not exist: %s", data_dir)
        return []
    return sorted(p for p in data_dir.glob(pattern) if p.is_file())


def load_market_records(paths: Sequence[Path]) -> list[MarketRecord]:
    """Load and concatenate every price table in ``paths``.

    Missing or unreadable files are logged and skipped; the load only fails
    when nothing usable comes back from any of them.

    Args:
        paths: Price-table files, one per commodity.

    Returns:
        All parsed records, in file order then line order.

    Raises:
        DataLoadError: If no indexable record was loaded from any file.
    """
    records: list[MarketRecord] = []
    skipped = 0

    for path in paths:
        try:
            file_records, report = parse_record_csv(Path(path))
        except (FileNotFoundError, OSError, UnicodeDecodeError) as exc:
            logger.error("Could not read price table %s: %s", path, exc)
            continue
        records.extend(file_records)
        skipped += report.rows_skipped

    if not any(r.is_indexable for r in records):
        raise DataLoadError([Path(p) for p in paths], rows_skipped=skipped)

    logger.info(
        "Loaded %d price records from %d file(s) (%d rows skipped)",
        len(records), len(paths), skipped,
    )
    return records


# ── Private helpers ───────────────────────────────────────────────────────────

def _split_line(line: str) -> list[str]:
    """Split one line on commas outside double quotes; fields are stripped."""
    try:
        fields = next(csv.reader([line], skipinitialspace=True))
    except (csv.Error, StopIteration) as exc:
        raise RowParseError(f"unreadable line ({exc})") from exc
    return [f.strip() for f in fields]


def _resolve_header(header: list[str], source: str) -> Optional[dict[str, int]]:
    """Map canonical column names to their position in ``header``."""
    positions: dict[str, int] = {}
    for idx, name in enumerate(header):
        canonical = HEADER_ALIASES.get(name.strip().lower())
        if canonical is not None and canonical not in positions:
            positions[canonical] = idx

    missing = [c for c in CANONICAL_COLUMNS if c not in positions]
    if not missing:
        return positions

    if len(header) == len(CANONICAL_COLUMNS):
        logger.warning(
            "Unrecognised header in %s (missing %s); reading columns positionally.",
            source, missing,
        )
        return {c: i for i, c in enumerate(CANONICAL_COLUMNS)}

    logger.warning(
        "Price table %s is missing required columns %s; ignoring file.",
        source, missing,
    )
    return None


def _parse_row(fields: list[str], positions: dict[str, int], width: int) -> MarketRecord:
    """Convert the fields of one line to a ``MarketRecord``."""
    if len(fields) != width:
        raise RowParseError(f"expected {width} fields, got {len(fields)}")

    numbers = {col: _parse_number(fields[positions[col]], col) for col in _NUMERIC_COLUMNS}

    try:
        return MarketRecord(
            state=fields[positions["state"]],
            district=fields[positions["district"]],
            market=fields[positions["market"]],
            variety=fields[positions["variety"]],
            group=fields[positions["group"]],
            arrivals_tonnes=numbers["arrivals"],
            min_price=numbers["minPrice"],
            max_price=numbers["maxPrice"],
            modal_price=numbers["modalPrice"],
            reported_date=_parse_date(fields[positions["reportedDate"]]),
        )
    except ValidationError as exc:
        raise RowParseError(str(exc)) from exc


def _parse_number(value: str, column: str) -> float:
    """Parse a numeric field; empty reads as 0."""
    if not value:
        return 0.0
    try:
        return float(value)
    except ValueError:
        raise RowParseError(f"non-numeric {column} '{value}'")


def _parse_date(value: str) -> date:
    """Parse a report date in any of ``DATE_FORMATS``."""
    if not value:
        raise RowParseError("empty reportedDate")
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise RowParseError(f"unrecognised reportedDate '{value}'")
