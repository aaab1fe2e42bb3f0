"""
Configuration for mandi-intel.

Layers, lowest precedence first:
  1. ``config/default.toml``   committed defaults
  2. ``config/local.toml``     machine-specific overrides (not committed)
  3. ``.env``                  secrets, loaded into the environment by python-dotenv
  4. the environment           ``MANDI_INTEL_*`` variables and ``OPENAI_API_KEY``

``load_config()`` merges the layers into one dict and validates it as a frozen
``AppConfig``; engine, analysis and CLI code read settings only from that
object.

Invalid values (a negative vehicle mileage, an unknown cache strategy, ...)
raise ``pydantic.ValidationError``.  That and ``DataLoadError`` are the only
conditions that stop the engine from starting.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

VALID_CACHE_STRATEGIES = frozenset({"unbounded", "lru"})
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ── Sub-config models ─────────────────────────────────────────────────────────


class DataConfig(BaseModel):
    """Filesystem locations for price tables and report output."""

    model_config = ConfigDict(frozen=True)

    data_dir: str = "data/raw"
    file_glob: str = "*.csv"
    output_dir: str = "data/outputs"


class GeocodingConfig(BaseModel):
    """Geocoding collaborator settings (OpenStreetMap Nominatim by default).

    ``min_interval_s`` spaces out request starts; Nominatim's usage policy
    asks for at most one request per second per client.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    base_url: str = "https://nominatim.openstreetmap.org/search"
    user_agent: str = "mandi-intel/0.1 (market-ranking)"
    timeout_s: float = 10.0
    min_interval_s: float = 1.0
    max_concurrency: int = 4
    cache_strategy: str = "unbounded"
    cache_max_entries: int = 2048

    @field_validator("cache_strategy")
    @classmethod
    def validate_cache_strategy(cls, v: str) -> str:
        if v not in VALID_CACHE_STRATEGIES:
            raise ValueError(
                f"cache_strategy must be one of {sorted(VALID_CACHE_STRATEGIES)}, got '{v}'."
            )
        return v

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_s must be positive, got {v}.")
        return v

    @field_validator("min_interval_s")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"min_interval_s must be non-negative, got {v}.")
        return v

    @field_validator("max_concurrency", "cache_max_entries")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class NarrativeConfig(BaseModel):
    """Narrative-suggestion (generative text) settings.

    The suggester is only built when ``enabled`` is true **and** an API key
    is available; otherwise reports carry no narrative.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    timeout_s: float = 30.0
    api_key: str = ""

    @field_validator("timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_s must be positive, got {v}.")
        return v


class TransportConfig(BaseModel):
    """Default vehicle economics used for transport cost."""

    model_config = ConfigDict(frozen=True)

    fuel_price_per_liter: float = 100.0
    mileage_km_per_liter: float = 15.0

    @field_validator("fuel_price_per_liter", "mileage_km_per_liter")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Vehicle figures must be non-negative, got {v}.")
        return v


class ForecastConfig(BaseModel):
    """Price forecast settings."""

    model_config = ConfigDict(frozen=True)

    horizon_months: int = 12
    baseline_window: int = 30
    random_seed: Optional[int] = None

    @field_validator("horizon_months")
    @classmethod
    def validate_horizon(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"horizon_months must be non-negative, got {v}.")
        return v

    @field_validator("baseline_window")
    @classmethod
    def validate_window(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"baseline_window must be >= 1, got {v}.")
        return v


class RankingConfig(BaseModel):
    """Market ranking settings."""

    model_config = ConfigDict(frozen=True)

    limit: int = 5
    state_limit: int = 3
    distance_top_k: int = 10

    @field_validator("limit", "state_limit", "distance_top_k")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Ranking limits must be non-negative, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Root-logger settings consumed by ``configure_logging``.

    ``log_file`` empty means stdout only.
    """

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"level must be one of {list(LOG_LEVELS)}, got '{v}'.")
        return level


class AppConfig(BaseModel):
    """Every setting the engine and CLI read, grouped by concern.

    ``AppConfig()`` is a complete all-defaults configuration; ``load_config()``
    is the normal way to obtain one.
    """

    model_config = ConfigDict(frozen=True)

    data: DataConfig = DataConfig()
    geocoding: GeocodingConfig = GeocodingConfig()
    narrative: NarrativeConfig = NarrativeConfig()
    transport: TransportConfig = TransportConfig()
    forecast: ForecastConfig = ForecastConfig()
    ranking: RankingConfig = RankingConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment variable → (section, key, converter).  ``None`` section means a
# top-level key.
_ENV_OVERRIDES: dict[str, tuple[Optional[str], str, Callable[[str], Any]]] = {
    "MANDI_INTEL_DATA_DIR":      ("data", "data_dir", str),
    "MANDI_INTEL_LOG_LEVEL":     ("logging", "level", str),
    "MANDI_INTEL_FORECAST_SEED": ("forecast", "random_seed", int),
    "MANDI_INTEL_DEBUG":         (None, "debug", _parse_bool),
    "OPENAI_API_KEY":            ("narrative", "api_key", str),
}


def project_root() -> Path:
    """Nearest ancestor of this package holding ``pyproject.toml``.

    Falls back to the package's parent directory when run from an
    installed wheel.
    """
    here = Path(__file__).resolve().parent
    for candidate in (here, *here.parents[:4]):
        if (candidate / "pyproject.toml").is_file():
            return candidate
    return here.parent


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base`` (tables merge, values replace)."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _env_layer(environ: Mapping[str, str]) -> dict[str, Any]:
    """Config fragment built from the recognised environment variables."""
    layer: dict[str, Any] = {}
    for var, (section, key, convert) in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        target = layer if section is None else layer.setdefault(section, {})
        target[key] = convert(value)
    return layer


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Build the ``AppConfig`` for this process.

    Args:
        config_path: TOML file to start from.  Defaults to
            ``<project root>/config/default.toml``.  A ``local.toml`` in the
            same directory is layered on top.

    Returns:
        Validated, frozen ``AppConfig``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        pydantic.ValidationError: If any merged value is invalid.
        ValueError: If ``MANDI_INTEL_FORECAST_SEED`` is not an integer.
    """
    root = project_root()
    load_dotenv(dotenv_path=root / ".env", override=False)

    path = Path(config_path) if config_path is not None else root / "config" / "default.toml"
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Create config/default.toml or pass --config."
        )

    raw = _read_toml(path)
    local = path.parent / "local.toml"
    if local.exists():
        raw = _merge(raw, _read_toml(local))
    raw = _merge(raw, _env_layer(os.environ))

    # ``debug`` may live at top level or under [project].
    project = raw.pop("project", {})
    raw.setdefault("debug", project.get("debug", False))

    return AppConfig.model_validate(raw)
