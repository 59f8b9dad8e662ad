"""Optional Redis client for push events and rate limiting.

An empty ``DULP_REDIS_URL`` leaves Redis off: events are dropped and
requests are not rate limited.
"""

import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_client: redis.Redis | None = None


async def init_redis(url: str) -> redis.Redis | None:
    """Create the shared client, or return None when no URL is configured."""
    global _client  # noqa: PLW0603
    if not url:
        logger.info("Redis disabled; push events and rate limiting are off")
        _client = None
        return None
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    return _client


async def close_redis() -> None:
    """Close the shared client if one was created."""
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis | None:
    """The shared client, or None when Redis is disabled."""
    return _client
