"""
Shared key-value store access.

Provides:
- create_redis_client / connect: redis.asyncio client construction and startup ping
- keys: the persisted key layout and TTL policy
"""

from usage_analytics.modules.store import keys
from usage_analytics.modules.store.redis_store import connect, create_redis_client

__all__ = [
    "keys",
    "connect",
    "create_redis_client",
]
