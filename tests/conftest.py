"""
Shared pytest fixtures for the mandi-intel test suite.

Provides:
  - ``make_record``: factory for ``MarketRecord`` with sensible defaults;
    override any field by keyword.
  - ``make_index``: builds a ``MarketIndex`` from a list of records.
  - ``sample_records`` / ``sample_index``: a small two-state, two-variety
    dataset used across modules.
  - ``write_price_table``: writes a CSV price table into ``tmp_path``.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Callable, Iterable

import pytest

from mandi_intel.models.record import MarketRecord
from mandi_intel.store.index import MarketIndex

CANONICAL_HEADER = (
    "state,district,market,variety,group,arrivals,minPrice,maxPrice,modalPrice,reportedDate"
)


def _record(**overrides) -> MarketRecord:
    fields = dict(
        state="Uttar Pradesh",
        district="Bulandshahar",
        market="Siyana",
        variety="Potato",
        group="Vegetables",
        arrivals_tonnes=10.0,
        min_price=900.0,
        max_price=1100.0,
        modal_price=1000.0,
        reported_date=date(2024, 1, 15),
    )
    fields.update(overrides)
    return MarketRecord(**fields)


@pytest.fixture
def make_record() -> Callable[..., MarketRecord]:
    """Factory: ``make_record(modal_price=..., reported_date=...)``."""
    return _record


@pytest.fixture
def make_index() -> Callable[[Iterable[MarketRecord]], MarketIndex]:
    return MarketIndex.build


@pytest.fixture
def sample_records() -> list[MarketRecord]:
    """Two varieties across two states and three markets."""
    return [
        _record(market="Siyana (Sub Yard)", modal_price=1000.0, max_price=1200.0,
                reported_date=date(2024, 1, 10)),
        _record(market="Siyana (Sub Yard)", modal_price=1400.0, max_price=1600.0,
                reported_date=date(2024, 7, 10)),
        _record(district="Agra", market="Agra", modal_price=1100.0, max_price=1300.0,
                arrivals_tonnes=40.0, reported_date=date(2024, 3, 5)),
        _record(state="Punjab", district="Ludhiana", market="Khanna",
                modal_price=1800.0, max_price=2100.0, min_price=1500.0,
                arrivals_tonnes=80.0, reported_date=date(2024, 5, 20)),
        _record(variety="Wheat", group="Cereals", modal_price=2200.0,
                max_price=2300.0, min_price=2100.0, reported_date=date(2024, 4, 1)),
        _record(variety="Other", modal_price=500.0, reported_date=date(2024, 4, 1)),
    ]


@pytest.fixture
def sample_index(sample_records) -> MarketIndex:
    return MarketIndex.build(sample_records)


@pytest.fixture
def write_price_table(tmp_path: Path) -> Callable[..., Path]:
    """Write ``rows`` (already comma-joined) under a header into ``tmp_path``."""

    def _write(name: str, rows: list[str], header: str = CANONICAL_HEADER) -> Path:
        path = tmp_path / name
        path.write_text("\n".join([header, *rows]) + "\n", encoding="utf-8")
        return path

    return _write
