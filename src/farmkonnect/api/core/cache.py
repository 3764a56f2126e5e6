import redis.asyncio as redis
from redis.exceptions import RedisError
from typing import Optional, Any
import json

from farmkonnect.api.config import settings
from farmkonnect.utils.logger import get_logger

logger = get_logger(__name__)

redis_client = redis.from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True
)


class CacheService:
    """
    Redis caching service

    Every operation degrades to a cache miss when caching is disabled or
    Redis is unreachable.
    """

    def __init__(self, client=None, enabled: Optional[bool] = None):
        self.client = client or redis_client
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        if not self.enabled:
            return None
        try:
            value = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        if value:
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Set value in cache

        Args:
            key: Cache key
            value: Value to cache (will be JSON-serialized)
            ttl: Time-to-live in seconds
        """
        if not self.enabled:
            return False
        serialized = json.dumps(value, default=str) if not isinstance(value, str) else value

        try:
            if ttl:
                return bool(await self.client.setex(key, ttl, serialized))
            return bool(await self.client.set(key, serialized))
        except RedisError as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache"""
        if not self.enabled:
            return False
        try:
            return await self.client.delete(key) > 0
        except RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    async def clear_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching pattern

        Args:
            pattern: Redis pattern (e.g., "forecast:<farm_id>:*")

        Returns:
            Number of keys deleted
        """
        if not self.enabled:
            return 0
        try:
            keys = []
            async for key in self.client.scan_iter(match=pattern):
                keys.append(key)

            if keys:
                return await self.client.delete(*keys)
            return 0
        except RedisError as e:
            logger.warning(f"Cache clear failed for {pattern}: {e}")
            return 0


def farm_analytics_pattern(farm_id) -> str:
    """Key pattern covering every cached analytics result of one farm"""
    return f"analytics:{farm_id}:*"


async def invalidate_farm_analytics(farm_id) -> int:
    """Drop cached forecasts and trends after a farm's finances change"""
    return await CacheService().clear_pattern(farm_analytics_pattern(farm_id))
