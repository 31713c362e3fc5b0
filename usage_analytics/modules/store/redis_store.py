"""
Redis client construction for the shared analytics store.

All components talk to one redis.asyncio client with decoded string replies.
"""

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from usage_analytics.config.settings import Settings
from usage_analytics.exceptions import StoreConnectionError
from usage_analytics.logger import logger


def create_redis_client(settings: Settings) -> aioredis.Redis:
    """
    Build an async Redis client from settings.

    Args:
        settings: Service settings carrying address, password and db index

    Returns:
        redis.asyncio.Redis client (not yet connected)
    """
    host, port = settings.redis_host_port
    return aioredis.Redis(
        host=host,
        port=port,
        password=settings.redis_password or None,
        db=settings.redis_db,
        decode_responses=True,
    )


async def connect(client: aioredis.Redis) -> aioredis.Redis:
    """
    Verify the store is reachable.

    Args:
        client: Redis client to ping

    Returns:
        The same client

    Raises:
        StoreConnectionError: If PING fails
    """
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.critical(f"Failed to connect to Redis: {e}")
        raise StoreConnectionError(f"Failed to connect to Redis: {e}") from e

    logger.info("Connected to Redis successfully")
    return client
