"""
Optional async Redis client for realtime pub/sub. If redis_url is empty or connection fails,
returns None and the app falls back to in-process broadcasting (single worker).
"""
import logging
from typing import Any

from vidshare.config import get_settings
from vidshare.services.broadcast import Broadcaster, LocalBroadcaster, RedisBroadcaster

logger = logging.getLogger(__name__)

_redis_client: Any = None


async def get_redis_client() -> Any:
    """Lazy singleton: one async Redis client or None if disabled/unavailable."""
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    url = (get_settings().redis_url or "").strip()
    if not url:
        return None
    try:
        from redis.asyncio import Redis
        client = Redis.from_url(url, decode_responses=True)
        await client.ping()
        _redis_client = client
        logger.info("Redis broadcast connected: %s", url.split("@")[-1] if "@" in url else url)
        return _redis_client
    except Exception as e:
        logger.warning("Redis unavailable (in-process broadcast only): %s", e, exc_info=False)
        return None


async def build_broadcaster() -> Broadcaster:
    """RedisBroadcaster when Redis is reachable, else LocalBroadcaster."""
    client = await get_redis_client()
    if client is None:
        return LocalBroadcaster()
    return RedisBroadcaster(client, get_settings().broadcast_channel_prefix)


async def close_redis() -> None:
    """Graceful shutdown: close Redis connection."""
    global _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except Exception as e:
            logger.warning("Redis close error: %s", e)
        _redis_client = None
