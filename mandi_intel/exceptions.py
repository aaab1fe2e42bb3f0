"""
Engine-level exceptions.

Only two failure modes abort the engine: a price source that yields no usable
rows at all (``DataLoadError``) and malformed configuration (raised by pydantic
as ``ValidationError`` from ``mandi_intel.config``).  Everything else degrades
to a best-effort answer.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class DataLoadError(RuntimeError):
    """Raised when no valid price rows could be loaded from any source.

    Attributes:
        sources:      The paths that were attempted.
        rows_skipped: Total rows rejected while parsing those paths.
    """

    def __init__(self, sources: Sequence[Path], rows_skipped: int = 0) -> None:
        self.sources      = list(sources)
        self.rows_skipped = rows_skipped
        if self.sources:
            names = ", ".join(p.name for p in self.sources[:5])
            more  = f" (+{len(self.sources) - 5} more)" if len(self.sources) > 5 else ""
            detail = f"from {len(self.sources)} file(s): {names}{more}"
        else:
            detail = "no source files were found"
        super().__init__(
            f"No valid market price rows loaded {detail}. "
            f"{rows_skipped} row(s) were skipped as unparsable."
        )
