"""Shared redis connection for the redis result-cache backend."""

from redis.asyncio import Redis

from config.settings import settings

_redis_client: Redis | None = None


async def get_redis() -> Redis:
    """Lazily created client. Short socket timeouts so a stuck redis reads as a miss."""
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout_sec,
            socket_connect_timeout=settings.redis_socket_timeout_sec,
            health_check_interval=30,
        )
    return _redis_client


async def redis_available() -> bool:
    if settings.result_cache_backend != "redis":
        return False
    client = await get_redis()
    return bool(await client.ping())


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
