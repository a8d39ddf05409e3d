"""
Redis cache for the public listings.

Only anonymous read models are cached: the public post feed (one key per
page / limit pair), the public category list and the tag list.  Each of
them embeds post data or public post counts, so any write that touches a
post, category or tag drops all of them at once with ``invalidate_posts``.

Redis is optional.  When it is unreachable every read is a miss and every
write is skipped, and the services fall through to the database.
"""
import json
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as redis

from blog_api.config import settings

logger = logging.getLogger(__name__)

PUBLIC_POSTS_PREFIX = "posts:public"
PUBLIC_CATEGORIES_KEY = "categories:public"
TAGS_KEY = "tags:all"


def public_posts_key(page: int, limit: int) -> str:
    return f"{PUBLIC_POSTS_PREFIX}:{page}:{limit}"


class CacheManager:
    def __init__(self) -> None:
        self._redis: redis.Redis | None = None

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis unavailable at %s, caching disabled: %s", settings.REDIS_URL, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Redis connected: %s", settings.REDIS_URL)

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get(self, key: str) -> dict | list | None:
        """Return the decoded value stored under *key*; None on a miss or error."""
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache read failed for %r: %s", key, exc)
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: dict | list, ttl: int = settings.CACHE_TTL_LIST) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache write failed for %r: %s", key, exc)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[dict | list]],
        ttl: int = settings.CACHE_TTL_LIST,
    ) -> dict | list:
        """
        Cache-aside read: return the cached value for *key*, or await
        *loader*, store its result and return it.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        await self.set(key, value, ttl)
        return value

    async def delete_keys(self, *patterns: str) -> None:
        """Delete every key matching any of the glob *patterns* (SCAN, not KEYS)."""
        if self._redis is None:
            return
        try:
            keys = [key for pattern in patterns async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache dropped %d key(s)", len(keys))
        except Exception as exc:
            logger.debug("Cache delete failed for %r: %s", patterns, exc)

    async def invalidate_posts(self) -> None:
        """Drop the public feed, the public category list and the tag list."""
        await self.delete_keys(f"{PUBLIC_POSTS_PREFIX}:*", PUBLIC_CATEGORIES_KEY, TAGS_KEY)


cache = CacheManager()
