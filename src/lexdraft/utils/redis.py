"""Redis client construction."""

from typing import Optional
import redis.asyncio as redis


def create_redis_client(url: Optional[str] = None) -> redis.Redis:
    """Create an async Redis client.

    The client connects lazily on its first command, so building one never
    fails when Redis is down.

    Args:
        url: Redis URL (defaults to settings.REDIS_URL)

    Returns:
        Redis async client with decoded string responses
    """
    from ..config import settings

    url = url or settings.REDIS_URL
    return redis.from_url(
        url,
        decode_responses=True,
        health_check_interval=30,
        socket_connect_timeout=5,
    )


async def close_redis(client: Optional[redis.Redis]) -> None:
    """Close Redis connection gracefully."""
    if client is not None:
        await client.aclose()


__all__ = ["create_redis_client", "close_redis"]
