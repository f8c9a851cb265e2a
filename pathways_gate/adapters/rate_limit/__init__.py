"""Rate limiting adapters.

The limiter counts through an injected ``AbstractStore``; the API layer
depends on ``AbstractRateLimiter`` only.
"""
