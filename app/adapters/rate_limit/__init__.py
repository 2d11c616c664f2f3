"""Request rate limiting adapters.

The HTTP layer depends on ``AbstractRateLimiter`` only, so the in-memory
store can be replaced by a shared one (e.g. Redis) when the API runs with
several workers.
"""
