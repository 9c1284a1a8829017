"""Redis caching service for listing and ranking responses.

Cache failures never fail a request: every operation logs the Redis
error and behaves like a miss.
"""

from typing import Optional

import structlog
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from launchspace.config import settings

logger = structlog.get_logger(__name__)

LIST_TTL = 60
RANKING_TTL = 30

INVALIDATION_PATTERNS = ("apps:*", "ranking:*", "stats:*")


class CacheService:
    """Async Redis cache service.

    With ``enabled=False`` no connection is ever opened and every read
    is a miss.
    """

    def __init__(self, redis_url: str, enabled: bool = True):
        self.redis_url = redis_url
        self.enabled = enabled
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="cache_service")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """Get a value from cache.

        Returns:
            Cached value as string, or None if not found, disabled or on error
        """
        if not self.enabled:
            return None
        try:
            redis = await self._get_redis()
            value = await redis.get(key)
            self.logger.debug("cache_hit" if value else "cache_miss", key=key)
            return value

        except RedisError as e:
            self.logger.error("cache_get_failed", key=key, error=str(e), exc_info=True)
            return None

    async def set(self, key: str, value: str, ttl: int = LIST_TTL) -> bool:
        if not self.enabled:
            return False
        try:
            redis = await self._get_redis()
            await redis.set(key, value, ex=ttl)
            self.logger.debug("cache_set", key=key, ttl=ttl, value_length=len(value))
            return True

        except RedisError as e:
            self.logger.error("cache_set_failed", key=key, error=str(e), exc_info=True)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a pattern.

        Args:
            pattern: Redis pattern (e.g., "apps:*", "ranking:2024-W01")

        Returns:
            Number of keys deleted, 0 on error
        """
        if not self.enabled:
            return 0
        try:
            redis = await self._get_redis()

            keys = [key async for key in redis.scan_iter(match=pattern, count=100)]
            deleted = await redis.delete(*keys) if keys else 0

            self.logger.info("cache_pattern_delete", pattern=pattern, keys_deleted=deleted)
            return deleted

        except RedisError as e:
            self.logger.error(
                "cache_pattern_delete_failed",
                pattern=pattern,
                error=str(e),
                exc_info=True,
            )
            return 0

    async def health_check(self) -> bool:
        if not self.enabled:
            return False
        try:
            redis = await self._get_redis()
            await redis.ping()
            self.logger.debug("redis_health_check_ok")
            return True

        except (RedisError, OSError) as e:
            self.logger.error("redis_health_check_failed", error=str(e), exc_info=True)
            return False

    async def close(self) -> None:
        """Close Redis connection. Called on application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


# Global cache instance
_cache_instance: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the process-wide cache service."""
    global _cache_instance

    if _cache_instance is None:
        _cache_instance = CacheService(settings.REDIS_URL, enabled=settings.CACHE_ENABLED)
        logger.info(
            "cache_service_initialized",
            redis_url=settings.REDIS_URL,
            enabled=settings.CACHE_ENABLED,
        )

    return _cache_instance


async def get_cache() -> CacheService:
    """FastAPI dependency for cache service.

    Usage:
        @router.get("/apps")
        async def list_apps(cache: CacheService = Depends(get_cache)):
            ...
    """
    return get_cache_service()


async def invalidate_apps_cache(cache: CacheService) -> int:
    """Drop cached listings, rankings and stats after any write.

    Returns:
        Number of cache keys deleted
    """
    total_deleted = 0
    for pattern in INVALIDATION_PATTERNS:
        total_deleted += await cache.delete_pattern(pattern)

    if total_deleted:
        logger.info("apps_cache_invalidated", keys_deleted=total_deleted)
    return total_deleted


async def commit_and_invalidate(db: AsyncSession, cache: CacheService) -> int:
    """Commit the request's writes, then invalidate.

    Keys are only dropped once other sessions can see the new rows, so a
    read racing the write cannot re-cache the old values.
    """
    await db.commit()
    return await invalidate_apps_cache(cache)


def cache_key_for_apps(
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
    category: Optional[str] = None,
    launch_week: Optional[str] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
) -> str:
    """Generate cache key for the public apps listing."""
    parts = ["apps", f"p{page}", f"l{limit}"]

    if status:
        parts.append(f"s{status}")
    if category:
        parts.append(f"c{category}")
    if launch_week:
        parts.append(f"w{launch_week}")
    if featured is not None:
        parts.append(f"f{int(featured)}")
    if search:
        parts.append(f"q{search.lower()}")

    return ":".join(parts)


def cache_key_for_ranking(week: str) -> str:
    return f"ranking:{week}"
