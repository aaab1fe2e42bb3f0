"""
Root-logger setup for mandi-intel.

``configure_logging(config)`` is called exactly once, by the CLI, before any
price table is read.  Library code only ever does::

    logger = logging.getLogger(__name__)

Output
------
  - stdout, always
  - ``config.log_file`` as well, when set (parent directories are created)

Line formats
------------
  text (default)::

    2026-02-24T15:00:00Z [WARNING] mandi_intel.geo.client: Geocoding 'Siyana' failed ...

  JSON (``json_format = true``), one object per line; ``extra=`` fields are
  lifted to the top level::

    {"ts": "2026-02-24T15:00:00Z", "level": "WARNING", "logger": "...", "msg": "..."}

Anything shaped like an OpenAI API key (``sk-...``) is masked in every
handler, since request errors from the SDK can echo the key back.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mandi_intel.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Chatty client libraries, held at WARNING regardless of the root level.
QUIET_LOGGERS = ("httpx", "httpcore", "openai")

_SECRET_PATTERN = re.compile(r"sk-[A-Za-z0-9_-]{8,}")

_RESERVED_RECORD_KEYS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class SecretMaskingFilter(logging.Filter):
    """Replace API-key-looking tokens in the rendered message with ``sk-***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _SECRET_PATTERN.sub("sk-***", message)
        if masked != message:
            record.msg, record.args = masked, None
        return True


class JsonLineFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict = {
            "ts":     stamp.strftime(TIMESTAMP_FORMAT),
            "level":  record.levelname,
            "logger": record.name,
            "msg":    record.getMessage(),
        }
        entry.update(
            (k, v) for k, v in record.__dict__.items()
            if k not in _RESERVED_RECORD_KEYS and not k.startswith("_")
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _build_handlers(config: "LoggingConfig", level: int) -> list[logging.Handler]:
    formatter: logging.Formatter = (
        JsonLineFormatter() if config.json_format
        else logging.Formatter(TEXT_FORMAT, datefmt=TIMESTAMP_FORMAT)
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        path = Path(config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    masking = SecretMaskingFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(masking)
    return handlers


def configure_logging(config: "LoggingConfig") -> None:
    """Install handlers on the root logger according to ``config``.

    Replaces any handlers configured earlier in the process.

    Args:
        config: ``AppConfig.logging``.
    """
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, handlers=_build_handlers(config, level), force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
