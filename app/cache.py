import json
import logging
from typing import Iterable

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)

ARTICLE_LIST_PATTERN = "articles:list:*"
CATEGORY_LIST_KEY = "categories:list"


def article_list_key(page: int, page_size: int, sort_by: str, sort_order: str) -> str:
    return f"articles:list:{page}:{page_size}:{sort_by}:{sort_order}"


def article_detail_key(article_id: int) -> str:
    return f"articles:detail:{article_id}"


class CacheManager:
    """
    Cache-aside manager backed by Redis, used for read paths only.

    Every public method tolerates an unavailable Redis: reads return None
    and writes are skipped, so a cache outage never fails a request.  The
    transactional workflows in ``app.services`` never touch the cache;
    routers invalidate the affected keys once a workflow has committed.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            self._redis = None

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

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
            if data is not None:
                self._hits += 1
                return json.loads(data)
            self._misses += 1
            return None
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """Persist *value* under *key* with an optional TTL (seconds)."""
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_keys(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not self._redis or not keys:
            return
        try:
            await self._redis.delete(*keys)
        except Exception as exc:
            logger.debug("Cache DELETE error for keys=%r: %s", keys, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN (avoids blocking KEYS)."""
        if not self._redis:
            return
        try:
            keys: list[str] = []
            async for key in self._redis.scan_iter(match=pattern):
                keys.append(key)
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Domain-level invalidation helpers
    # ------------------------------------------------------------------

    async def invalidate_articles(self, article_ids: Iterable[int] = ()) -> None:
        """
        Purge the article list pages and, for each id in *article_ids*,
        its detail entry.
        """
        await self.delete_pattern(ARTICLE_LIST_PATTERN)
        await self.delete_keys(article_detail_key(a) for a in article_ids)

    async def invalidate_all_articles(self) -> None:
        """Used after workflows whose affected id set is not known up front."""
        await self.delete_pattern("articles:*")

    async def invalidate_categories(self) -> None:
        await self.delete_keys([CATEGORY_LIST_KEY])

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
