"""
Tests for mandi_intel/cli.py via typer's CliRunner.

Every command runs against a temporary config with geocoding and narratives
disabled, so nothing touches the network.
"""

from __future__ import annotations

import re

import pytest
from typer.testing import CliRunner

from mandi_intel.cli import app

runner = CliRunner()

_ROWS = [
    "Uttar Pradesh,Bulandshahar,Siyana (Sub Yard),Potato,Vegetables,10,900,1200,1000,2024-01-10",
    "Uttar Pradesh,Bulandshahar,Siyana (Sub Yard),Potato,Vegetables,12,1100,1600,1400,2024-07-10",
    "Uttar Pradesh,Agra,Agra,Potato,Vegetables,40,1000,1300,1100,2024-03-05",
    "Punjab,Ludhiana,Khanna,Potato,Vegetables,80,1500,2100,1800,2024-05-20",
    "Uttar Pradesh,Bulandshahar,Siyana (Sub Yard),Wheat,Cereals,5,2100,2300,2200,2024-04-01",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("MANDI_INTEL_DATA_DIR", "MANDI_INTEL_LOG_LEVEL", "MANDI_INTEL_FORECAST_SEED",
                 "MANDI_INTEL_DEBUG", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path, write_price_table):
    write_price_table("potato.csv", _ROWS)
    path = tmp_path / "config.toml"
    path.write_text(
        f'[data]\ndata_dir = "{tmp_path.as_posix()}"\n\n'
        "[geocoding]\nenabled = false\n\n"
        "[narrative]\nenabled = false\n\n"
        "[transport]\nfuel_price_per_liter = 100.0\nmileage_km_per_liter = 10.0\n\n"
        '[logging]\nlevel = "WARNING"\n',
        encoding="utf-8",
    )
    return str(path)


def _invoke(*args: str):
    return runner.invoke(app, list(args))


# ── validate-config ────────────────────────────────────────────────────────────

class TestValidateConfig:
    def test_ok(self, config_file):
        result = _invoke("validate-config", "--config", config_file)
        assert result.exit_code == 0
        assert "[OK] Configuration is valid." in result.output
        assert "Geocoding:    off (cache=unbounded)" in result.output

    def test_full_masks_api_key(self, config_file, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-secret")
        result = _invoke("validate-config", "--config", config_file, "--full")
        assert result.exit_code == 0
        assert '"api_key": "***"' in result.output
        assert "sk-secret" not in result.output

    def test_missing_file(self, tmp_path):
        result = _invoke("validate-config", "--config", str(tmp_path / "missing.toml"))
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


# ── Listing ────────────────────────────────────────────────────────────────────

class TestListing:
    def test_list_states(self, config_file):
        result = _invoke("list-states", "--config", config_file)
        assert result.exit_code == 0
        assert result.output.split() == ["Punjab", "Uttar", "Pradesh"]

    def test_list_districts(self, config_file):
        result = _invoke("list-districts", "Uttar Pradesh", "--config", config_file)
        assert result.output.splitlines() == ["Agra", "Bulandshahar"]

    def test_list_districts_unknown_state(self, config_file):
        result = _invoke("list-districts", "Goa", "--config", config_file)
        assert result.exit_code == 0
        assert "No districts found for state 'Goa'." in result.output

    def test_list_markets(self, config_file):
        result = _invoke("list-markets", "Uttar Pradesh", "Bulandshahar", "--config", config_file)
        assert result.output.splitlines() == ["Siyana (Sub Yard)"]

    def test_list_varieties(self, config_file):
        result = _invoke("list-varieties", "--config", config_file)
        assert result.output.splitlines() == ["Potato", "Wheat"]

    def test_empty_data_dir(self, config_file, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = _invoke("list-states", "--config", config_file, "--data-dir", str(empty))
        assert result.exit_code == 1
        assert "[ERROR] No valid market price rows loaded" in result.output


# ── Analysis ───────────────────────────────────────────────────────────────────

class TestAnalysisCommands:
    def test_seasonal(self, config_file):
        result = _invoke("seasonal", "Potato", "--config", config_file)
        assert result.exit_code == 0
        assert "Seasonal pattern for Potato:" in result.output
        assert "Best month to sell:" in result.output

    def test_seasonal_unknown_variety(self, config_file):
        result = _invoke("seasonal", "Mango", "--config", config_file)
        assert result.exit_code == 0
        assert "No records for variety 'Mango'." in result.output

    def test_forecast(self, config_file):
        result = _invoke("forecast", "Potato", "--months", "3", "--seed", "7", "--config", config_file)
        assert result.exit_code == 0
        rows = [line for line in result.output.splitlines() if re.match(r"^\s+\d{4}-\d{2}\s", line)]
        assert len(rows) == 3

    def test_forecast_seed_is_reproducible(self, config_file):
        args = ("forecast", "Potato", "--months", "4", "--seed", "7", "--config", config_file)
        assert _invoke(*args).output == _invoke(*args).output

    def test_forecast_negative_months(self, config_file):
        result = _invoke("forecast", "Potato", "--months=-1", "--config", config_file)
        assert result.exit_code == 1
        assert "[ERROR]" in result.output


# ── rank ───────────────────────────────────────────────────────────────────────

class TestRank:
    def test_with_location(self, config_file, tmp_path):
        out = tmp_path / "reports"
        result = _invoke(
            "rank", "Potato",
            "--state", "Uttar Pradesh", "--district", "Bulandshahar",
            "--lat", "28.44", "--lon", "77.81",
            "--no-narrative", "--output-dir", str(out),
            "--config", config_file,
        )
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        ranked = [line for line in lines if re.match(r"^\s+\d+\. ", line)]
        assert "Siyana (Sub Yard)" in ranked[0]
        assert "Khanna" in ranked[-1]
        assert "transport 500" in ranked[0]
        assert "Top markets in Uttar Pradesh:" in result.output
        assert len(list(out.glob("ranking_potato_*.csv"))) == 1
        assert len(list(out.glob("report_potato_*.json"))) == 1

    def test_without_location(self, config_file):
        result = _invoke("rank", "Potato", "--no-narrative", "--config", config_file)
        assert result.exit_code == 0
        assert "n/a km" in result.output
        assert "Top markets in" not in result.output

    def test_unknown_variety(self, config_file):
        result = _invoke("rank", "Mango", "--config", config_file)
        assert result.exit_code == 0
        assert "No markets found for variety 'Mango'." in result.output

    def test_lat_without_lon(self, config_file):
        result = _invoke("rank", "Potato", "--lat", "28.4", "--config", config_file)
        assert result.exit_code == 1
        assert "--lat and --lon must be given together" in result.output

    def test_invalid_latitude(self, config_file):
        result = _invoke("rank", "Potato", "--lat", "95", "--lon", "77.8", "--config", config_file)
        assert result.exit_code == 1
        assert "[ERROR] Invalid input" in result.output

    def test_negative_mileage(self, config_file):
        result = _invoke("rank", "Potato", "--mileage=-2", "--config", config_file)
        assert result.exit_code == 1
        assert "[ERROR] Invalid input" in result.output
