"""
Record store — the in-memory ``MarketIndex`` built once per load.
"""
