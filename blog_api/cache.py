import json
import logging

import redis.asyncio as redis

from blog_api.config import settings

logger = logging.getLogger(__name__)

POSTS_PREFIX = "posts"


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    Every public method tolerates a missing or broken Redis: reads report
    a miss and writes are skipped, so callers always fall through to the
    database.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self, url: str | None = None) -> None:
        """Open the connection pool.  Called once at application startup."""
        url = url or settings.REDIS_URL
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except (redis.RedisError, OSError) as exc:
            logger.warning("Redis unavailable at %s, caching disabled: %s", url, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Redis connected: %s", url)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except redis.RedisError as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """Store *value* under *key*; failures are logged, never raised."""
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except redis.RedisError as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN."""
        if not self._redis:
            return
        try:
            keys: list[str] = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except redis.RedisError as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Keys and invalidation
    # ------------------------------------------------------------------

    @staticmethod
    def list_key(
        page: int, limit: int, category: str | None, search: str | None, sort_order: str
    ) -> str:
        return f"{POSTS_PREFIX}:list:{page}:{limit}:{sort_order}:{category or ''}:{search or ''}"

    @staticmethod
    def detail_key(kind: str, identifier: str) -> str:
        return f"{POSTS_PREFIX}:detail:{kind}:{identifier}"

    async def invalidate_posts(self) -> None:
        """
        Drop every cached post response.

        Posts embed their category, so category writes call this too.
        Slug and id keys for the same post cannot be matched cheaply, so
        detail entries are purged wholesale along with the list pages.
        """
        await self.delete_pattern(f"{POSTS_PREFIX}:*")

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "enabled": self.enabled,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level instance shared across request handlers.
cache = CacheManager()
