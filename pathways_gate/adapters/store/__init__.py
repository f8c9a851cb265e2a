"""Counter and cache stores.

The limiter, response cache and blocklist depend on ``AbstractStore`` only, so
the per-process store and the shared Redis store can be swapped through
configuration without touching the HTTP layer.
"""
