"""
mandi-intel command line.

Every data command goes through ``_build_engine_or_exit``: load the config,
set up logging, read the price tables, then answer one query on stdout.
Aborting conditions (missing or invalid config, no usable price rows, bad
arguments) print ``[ERROR] ...`` to stderr and exit with status 1.

Examples::

    pip install -e .
    mandi-intel --help
    mandi-intel validate-config --full
    mandi-intel list-states
    mandi-intel list-districts "Uttar Pradesh"
    mandi-intel list-markets "Uttar Pradesh" Bulandshahar
    mandi-intel list-varieties
    mandi-intel seasonal Potato
    mandi-intel forecast Potato --months 6 --seed 42
    mandi-intel rank Potato --state "Uttar Pradesh" --lat 28.4 --lon 77.8
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="mandi-intel",
    help="Commodity market intelligence — seasonal prices, forecasts and market ranking.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _fail(message: str) -> typer.Exit:
    typer.echo(f"[ERROR] {message}", err=True)
    return typer.Exit(code=1)


def _load_config_or_exit(config_path: Optional[str] = None):
    """``load_config()``, turning a missing or invalid file into exit code 1."""
    from pydantic import ValidationError

    from mandi_intel.config import load_config

    try:
        return load_config(Path(config_path) if config_path else None)
    except FileNotFoundError as exc:
        raise _fail(str(exc))
    except (ValidationError, ValueError) as exc:
        raise _fail(f"Invalid configuration: {exc}")


def _configure_logging(config):
    from mandi_intel.utils.logging import configure_logging
    configure_logging(config.logging)


def _build_engine_or_exit(
    config_path:   Optional[str],
    data_dir:      Optional[str] = None,
    forecast_seed: Optional[int] = None,
):
    """Load config, configure logging and build the engine; exit 1 on failure."""
    from mandi_intel.engine import MarketIntelligenceEngine
    from mandi_intel.exceptions import DataLoadError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if data_dir:
        config = config.model_copy(
            update={"data": config.data.model_copy(update={"data_dir": data_dir})}
        )
    if forecast_seed is not None:
        config = config.model_copy(
            update={"forecast": config.forecast.model_copy(update={"random_seed": forecast_seed})}
        )

    try:
        return MarketIntelligenceEngine.from_config(config)
    except DataLoadError as exc:
        raise _fail(str(exc))


def _echo_list(items: list[str], empty_message: str) -> None:
    if not items:
        typer.echo(empty_message)
        return
    for item in items:
        typer.echo(item)


_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")
_DATA_DIR_OPTION = typer.Option(
    None, "--data-dir", help="Override the price-table directory from config.",
)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None, "--config", help="TOML config to check (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False, "--full", help="Also dump every field as JSON (API key masked).",
    ),
) -> None:
    """Load the configuration and summarise the effective settings."""
    config = _load_config_or_exit(config_path)

    def on_off(flag: bool) -> str:
        return "on" if flag else "off"

    summary = [
        ("Price tables", f"{config.data.data_dir} ({config.data.file_glob})"),
        ("Reports", config.data.output_dir),
        ("Geocoding", f"{on_off(config.geocoding.enabled)} (cache={config.geocoding.cache_strategy})"),
        ("Narrative", (
            f"{on_off(config.narrative.enabled)} (model={config.narrative.model}, "
            f"key={'set' if config.narrative.api_key else 'missing'})"
        )),
        ("Vehicle", (
            f"{config.transport.fuel_price_per_liter}/L, "
            f"{config.transport.mileage_km_per_liter} km/L"
        )),
        ("Forecast", f"{config.forecast.horizon_months} months, seed={config.forecast.random_seed}"),
        ("Log level", config.logging.level),
    ]
    for label, value in summary:
        typer.echo(f"  {label + ':':<14}{value}")

    if show_full:
        dumped = config.model_dump(mode="json")
        if dumped["narrative"]["api_key"]:
            dumped["narrative"]["api_key"] = "***"
        typer.echo("")
        typer.echo(json.dumps(dumped, indent=2))

    typer.echo("")
    typer.echo("[OK] Configuration is valid.")


@app.command("list-states")
def list_states(
    data_dir: Optional[str] = _DATA_DIR_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List every state present in the price tables."""
    engine = _build_engine_or_exit(config_path, data_dir)
    _echo_list(engine.list_states(), "No states found.")


@app.command("list-districts")
def list_districts(
    state: str = typer.Argument(..., help="State name, as it appears in the data."),
    data_dir: Optional[str] = _DATA_DIR_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List the districts of STATE."""
    engine = _build_engine_or_exit(config_path, data_dir)
    _echo_list(engine.list_districts(state), f"No districts found for state '{state}'.")


@app.command("list-markets")
def list_markets(
    state: str = typer.Argument(..., help="State name."),
    district: str = typer.Argument(..., help="District name."),
    data_dir: Optional[str] = _DATA_DIR_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List the markets of DISTRICT in STATE."""
    engine = _build_engine_or_exit(config_path, data_dir)
    _echo_list(
        engine.list_markets(state, district),
        f"No markets found for '{district}, {state}'.",
    )


@app.command("list-varieties")
def list_varieties(
    data_dir: Optional[str] = _DATA_DIR_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List every commodity variety (excluding 'Other')."""
    engine = _build_engine_or_exit(config_path, data_dir)
    _echo_list(engine.list_varieties(), "No varieties found.")


@app.command("seasonal")
def seasonal(
    variety: str = typer.Argument(..., help="Commodity variety."),
    data_dir: Optional[str] = _DATA_DIR_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Print the twelve-month seasonal price pattern of VARIETY."""
    from mandi_intel.analysis.seasonal import best_selling_month

    engine = _build_engine_or_exit(config_path, data_dir)
    patterns = engine.seasonal_patterns(variety)
    if not patterns:
        typer.echo(f"No records for variety '{variety}'.")
        return

    typer.echo(f"Seasonal pattern for {variety}:")
    typer.echo(f"  {'Month':<10} {'Avg price':>10} {'Index':>7}  Recommendation")
    for p in patterns:
        typer.echo(
            f"  {p.month_name:<10} {p.average_price:>10.0f} {p.price_index:>7.3f}  {p.recommendation}"
        )

    best = best_selling_month(patterns)
    if best is not None:
        typer.echo("")
        typer.echo(f"Best month to sell: {best.month_name} (index {best.price_index:.2f})")


@app.command("forecast")
def forecast(
    variety: str = typer.Argument(..., help="Commodity variety."),
    months: Optional[int] = typer.Option(
        None,
        "--months",
        help="Forecast horizon in months (default: forecast.horizon_months).",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Random seed for a reproducible forecast.",
    ),
    data_dir: Optional[str] = _DATA_DIR_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Print a month-by-month price forecast for VARIETY."""
    if months is not None and months < 0:
        raise _fail("--months must be non-negative.")

    engine = _build_engine_or_exit(config_path, data_dir, forecast_seed=seed)
    forecasts = engine.forecast(variety, months=months)
    if not forecasts:
        typer.echo(f"No forecast for variety '{variety}'.")
        return

    typer.echo(f"Price forecast for {variety}:")
    typer.echo(f"  {'Month':<8} {'Price':>8} {'Conf.':>6}  Trend")
    for f in forecasts:
        typer.echo(f"  {f.date:<8} {f.predicted_price:>8.0f} {f.confidence:>6.2f}  {f.trend}")


@app.command("rank")
def rank(
    variety: str = typer.Argument(..., help="Commodity variety."),
    state: Optional[str] = typer.Option(
        None, "--state", help="Your state; its markets are listed first.",
    ),
    district: Optional[str] = typer.Option(
        None, "--district", help="Your district (used for fallback distances).",
    ),
    market: Optional[str] = typer.Option(
        None, "--market", help="Only rank markets with exactly this name.",
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", help="Number of markets to list (default: ranking.limit).",
    ),
    lat: Optional[float] = typer.Option(None, "--lat", help="Your latitude."),
    lon: Optional[float] = typer.Option(None, "--lon", help="Your longitude."),
    fuel_price: Optional[float] = typer.Option(
        None, "--fuel-price", help="Fuel price per litre (default: transport config).",
    ),
    mileage: Optional[float] = typer.Option(
        None, "--mileage", help="Vehicle mileage in km per litre (default: transport config).",
    ),
    narrative: bool = typer.Option(
        True, "--narrative/--no-narrative", help="Ask for narrative market advice.",
    ),
    output_dir: Optional[str] = typer.Option(
        None, "--output-dir", help="Also write CSV + JSON reports to this directory.",
    ),
    data_dir: Optional[str] = _DATA_DIR_OPTION,
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Rank the best markets to sell VARIETY in."""
    from pydantic import ValidationError

    from mandi_intel.models.market import UserLocation, VehicleInfo
    from mandi_intel.recommendations.reporter import write_ranking_csv, write_report_json

    if (lat is None) != (lon is None):
        raise _fail("--lat and --lon must be given together.")
    if limit is not None and limit < 0:
        raise _fail("--limit must be non-negative.")

    engine = _build_engine_or_exit(config_path, data_dir)

    try:
        vehicle = VehicleInfo(
            fuel_price_per_liter=(
                fuel_price if fuel_price is not None
                else engine.config.transport.fuel_price_per_liter
            ),
            mileage_km_per_liter=(
                mileage if mileage is not None
                else engine.config.transport.mileage_km_per_liter
            ),
        )
        user_location = (
            UserLocation(lat=lat, lon=lon, state=state, district=district)
            if lat is not None and lon is not None else None
        )
    except ValidationError as exc:
        raise _fail(f"Invalid input: {exc}")

    report = asyncio.run(
        engine.recommend(
            variety,
            user_location=user_location,
            vehicle=vehicle,
            market=market,
            limit=limit,
            include_narrative=narrative,
            reference_state=state,
        )
    )

    if not report.markets:
        typer.echo(f"No markets found for variety '{variety}'.")
        return

    typer.echo(f"Best markets for {variety}:")
    for i, m in enumerate(report.markets, start=1):
        dist = "   n/a" if m.distance_km is None else f"{m.distance_km:6.0f}"
        typer.echo(
            f"  {i:>2}. {m.market} ({m.district}, {m.state})  "
            f"high {m.high_price:.0f} [{m.high_price_month_abbr}]  "
            f"low {m.low_price:.0f} [{m.low_price_month_abbr}]  "
            f"{dist} km  transport {m.transport_cost}  score {m.score}/5"
        )

    if report.state_markets:
        typer.echo("")
        typer.echo(f"Top markets in {state}:")
        for m in report.state_markets:
            typer.echo(f"  - {m.market} ({m.district})  high {m.high_price:.0f}")

    if report.narrative:
        typer.echo("")
        if report.narrative_is_fallback:
            typer.echo("[WARN] Narrative service unavailable; showing general advice.")
        typer.echo(report.narrative)

    if output_dir:
        out = Path(output_dir)
        csv_path = write_ranking_csv(report.markets, out, variety)
        json_path = write_report_json(report, out)
        typer.echo("")
        typer.echo(f"[OK] Wrote {csv_path} and {json_path}")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
