"""
Calendar helpers for month-grained price analysis.

Seasonal patterns and forecasts are keyed by calendar month (1–12); forecasts
additionally carry a ``"YYYY-MM"`` label.  These helpers keep the month
arithmetic in one place.
"""

from __future__ import annotations

import calendar
from datetime import date

MONTHS: tuple[int, ...] = tuple(range(1, 13))

MONTH_NAMES: tuple[str, ...] = tuple(calendar.month_name[m] for m in MONTHS)
MONTH_ABBRS: tuple[str, ...] = tuple(calendar.month_abbr[m] for m in MONTHS)


def month_name(month: int) -> str:
    """Return the English month name for ``month`` (1 = ``"January"``).

    Raises:
        ValueError: If ``month`` is outside 1..12.
    """
    _check_month(month)
    return MONTH_NAMES[month - 1]


def month_abbr(month: int | None) -> str:
    """Return the three-letter month abbreviation, or ``"N/A"`` for ``None``."""
    if month is None:
        return "N/A"
    _check_month(month)
    return MONTH_ABBRS[month - 1]


def add_months(start: date, months: int) -> tuple[int, int]:
    """Return ``(year, month)`` lying ``months`` calendar months after ``start``.

    The day of month is ignored, so there is no end-of-month clamping to
    worry about.

    Args:
        start:  Reference date.
        months: Number of months to advance (may be 0 or negative).

    Returns:
        ``(year, month)`` tuple with ``month`` in 1..12.
    """
    index = start.year * 12 + (start.month - 1) + months
    return index // 12, index % 12 + 1


def year_month_label(year: int, month: int) -> str:
    """Format ``(year, month)`` as ``"YYYY-MM"``."""
    _check_month(month)
    return f"{year:04d}-{month:02d}"


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}.")
