"""
Cache package initialization.

Redis-backed caching for provider lookups.
"""

from freightdesk.cache.redis_client import CacheKeyManager, RedisClient

__all__ = [
    "CacheKeyManager",
    "RedisClient",
]
