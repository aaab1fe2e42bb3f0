"""
Ingestion layer — turns raw commodity price tables into ``MarketRecord`` objects.

Submodules:
  record_csv — CSV parser (quoted fields, per-row skip-with-warning) and
               multi-file loader.
"""
