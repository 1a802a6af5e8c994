import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from conduit.config import settings

logger = logging.getLogger(__name__)

POPULAR_TAGS_KEY = "tags:popular"


class CacheManager:
    """
    Redis cache for the popular tag list.

    Article, profile and comment payloads all carry viewer-relative flags,
    so the tag list is the only response shared by every caller and the
    only thing stored here.  Without a Redis connection (``_redis is None``)
    every read is a miss and every write is skipped; a Redis error mid-request
    is logged and treated the same way.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits = 0
        self._misses = 0

    async def connect(self) -> None:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            logger.warning("Redis at %s unreachable, tag cache disabled: %s", settings.REDIS_URL, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Tag cache connected to %s", settings.REDIS_URL)

    async def disconnect(self) -> None:
        client, self._redis = self._redis, None
        if client is not None:
            await client.aclose()

    # ------------------------------------------------------------------
    # Popular tags
    # ------------------------------------------------------------------

    async def get_popular_tags(self) -> list[str] | None:
        raw = None
        if self._redis is not None:
            try:
                raw = await self._redis.get(POPULAR_TAGS_KEY)
            except RedisError as exc:
                logger.debug("Tag cache read failed: %s", exc)
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    async def set_popular_tags(self, tags: list[str]) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(POPULAR_TAGS_KEY, json.dumps(tags), ex=settings.CACHE_TTL_TAGS)
        except RedisError as exc:
            logger.debug("Tag cache write failed: %s", exc)

    async def invalidate_tags(self) -> None:
        """Forget the cached list; called after an article is created or deleted."""
        if self._redis is None:
            return
        try:
            await self._redis.delete(POPULAR_TAGS_KEY)
        except RedisError as exc:
            logger.warning("Tag cache invalidation failed: %s", exc)

    @property
    def stats(self) -> dict:
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(100.0 * self._hits / lookups, 1) if lookups else 0.0,
        }


cache = CacheManager()
