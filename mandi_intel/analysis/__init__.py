"""
Price analysis over a ``MarketIndex``.

Modules
-------
seasonal : monthly means with fallback, price index, selling recommendation.
forecast : month-by-month price projection from the seasonal means.

Both are pure computations — no I/O, no network.
"""
