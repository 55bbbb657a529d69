"""Redis connection pool.

Redis carries progress events (pub/sub) and rate-limit counters. The
learning path works without it: callers that can degrade use
`get_redis_optional()` and skip the Redis step when it returns None.
"""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Create the shared client at startup. Connections open lazily on first use."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the pool on shutdown; later lookups see Redis as unavailable."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Client for code that needs Redis; raises RuntimeError when not initialized.

    The rate limiter catches that error and lets the request through.
    """
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


def get_redis_optional() -> redis.Redis | None:
    """Client for event publishing and readiness checks, or None when Redis is off."""
    return _pool
