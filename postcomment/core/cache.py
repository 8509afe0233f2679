"""Read-through cache with targeted invalidation.

Architecture:
- ``CacheStore``: injected key-value capability (get / set-with-TTL / delete)
- ``RedisCacheStore``: production store on ``redis.asyncio``
- ``CacheKeys``: the colon-delimited key scheme, namespaced by entity and view
- ``CacheCoordinator``: wraps reads (read-through) and writes (invalidate)

Consistency is bounded by TTL, not strict: a write deletes the keys it can
make stale and the next read repopulates them. Store failures never fail a
request; they degrade to a miss (reads) or a no-op (writes).
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, TypeVar

import redis.asyncio as redis
from pydantic import TypeAdapter, ValidationError

from postcomment.core.exceptions import CacheUnavailableError
from postcomment.core.logging import get_logger


if TYPE_CHECKING:
    from postcomment.config.settings import Settings


logger = get_logger(__name__)

T = TypeVar("T")


class CachePolicy(str, Enum):
    """TTL policy a cache key belongs to."""

    FEED_LATEST = "feed_latest"
    POST = "post"
    COMMENT_TREE = "comment_tree"
    COMMENT_TOP = "comment_top"
    COMMENT_COUNT = "comment_count"


@dataclass(frozen=True)
class CacheKey:
    """A cache key string bound to its TTL policy."""

    value: str
    policy: CachePolicy

    def __str__(self) -> str:
        return self.value


class CacheKeys:
    """Key scheme shared by every process using the cache."""

    @staticmethod
    def latest_posts() -> CacheKey:
        return CacheKey("post:latest", CachePolicy.FEED_LATEST)

    @staticmethod
    def post(post_id: int) -> CacheKey:
        return CacheKey(f"post:{post_id}", CachePolicy.POST)

    @staticmethod
    def comment_tree(post_id: int) -> CacheKey:
        return CacheKey(f"comments:tree:{post_id}", CachePolicy.COMMENT_TREE)

    @staticmethod
    def top_comments(post_id: int) -> CacheKey:
        return CacheKey(f"comments:top:{post_id}", CachePolicy.COMMENT_TOP)

    @staticmethod
    def comment_count(post_id: int) -> CacheKey:
        return CacheKey(f"comments:count:{post_id}", CachePolicy.COMMENT_COUNT)


@dataclass(frozen=True)
class CacheTTLs:
    """TTL in seconds per policy."""

    feed_latest: int = 300
    post: int = 600
    comment_tree: int = 300
    comment_top: int = 60
    comment_count: int = 600

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CacheTTLs":
        return cls(
            feed_latest=settings.cache_ttl_feed_latest_seconds,
            post=settings.cache_ttl_post_seconds,
            comment_tree=settings.cache_ttl_comment_tree_seconds,
            comment_top=settings.cache_ttl_comment_top_seconds,
            comment_count=settings.cache_ttl_comment_count_seconds,
        )

    def for_policy(self, policy: CachePolicy) -> int:
        return getattr(self, policy.value)


class CacheStore(Protocol):
    """Key-value store contract. Failures raise ``CacheUnavailableError``."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...


class RedisCacheStore:
    """``CacheStore`` backed by a shared Redis instance.

    The client reconnects on its own once Redis is back. After a failure the
    store answers ``CacheUnavailableError`` without touching Redis for
    ``retry_backoff`` seconds, so an outage costs one timeout per window
    instead of one per request.
    """

    def __init__(self, client: redis.Redis, retry_backoff: float = 5.0):
        self.client = client
        self.retry_backoff = retry_backoff
        self._down_until: float | None = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RedisCacheStore":
        """Pooled client; connections are opened on first use."""
        client = redis.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_connect_timeout,
            retry_on_timeout=settings.redis_retry_on_timeout,
            health_check_interval=settings.redis_health_check_interval,
            decode_responses=True,
        )
        return cls(client, settings.redis_retry_backoff_seconds)

    @property
    def available(self) -> bool:
        return self._down_until is None

    async def ping(self) -> bool:
        try:
            await self._run(self.client.ping)
        except CacheUnavailableError:
            return False
        return True

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("redis_disconnected")

    async def get(self, key: str) -> str | None:
        return await self._run(self.client.get, key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._run(self.client.set, key, value, ex=ttl_seconds)

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        await self._run(self.client.delete, *keys)

    async def _run(self, command: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        if self._down_until is not None and time.monotonic() < self._down_until:
            msg = "Redis unavailable; retrying after backoff"
            raise CacheUnavailableError(msg)
        try:
            result = await command(*args, **kwargs)
        except redis.RedisError as e:
            if self._down_until is None:
                logger.warning("redis_unavailable", error=str(e))
            self._down_until = time.monotonic() + self.retry_backoff
            raise CacheUnavailableError(str(e)) from e
        if self._down_until is not None:
            self._down_until = None
            logger.info("redis_recovered")
        return result


class CacheCoordinator:
    """Read-through caching and invalidation over an optional ``CacheStore``."""

    def __init__(self, store: CacheStore | None, ttls: CacheTTLs | None = None):
        self.store = store
        self.ttls = ttls or CacheTTLs()

    @property
    def enabled(self) -> bool:
        return self.store is not None

    @property
    def available(self) -> bool:
        """False while the store is inside a failure backoff."""
        return self.enabled and getattr(self.store, "available", True)

    async def read(
        self,
        key: CacheKey,
        loader: Callable[[], Awaitable[T]],
        adapter: TypeAdapter[T],
    ) -> T:
        """Return the cached value for ``key`` or load, store and return it.

        Exceptions raised by ``loader`` propagate and nothing is cached.
        """
        if self.store is None:
            return await loader()

        cached = await self._get(key)
        if cached is not None:
            try:
                value = adapter.validate_json(cached)
            except ValidationError:
                logger.warning("cache_payload_invalid", key=key.value)
            else:
                logger.debug("cache_hit", key=key.value)
                return value

        logger.debug("cache_miss", key=key.value)
        value = await loader()
        await self._set(key, adapter.dump_json(value).decode())
        return value

    async def invalidate(self, *keys: CacheKey) -> None:
        """Delete ``keys`` immediately. Absent keys are ignored."""
        if self.store is None or not keys:
            return
        names = [key.value for key in keys]
        try:
            await self.store.delete(*names)
        except CacheUnavailableError as e:
            # Entries left behind expire with their TTL.
            logger.warning("cache_invalidate_failed", keys=names, error=str(e))
        else:
            logger.debug("cache_invalidated", keys=names)

    async def _get(self, key: CacheKey) -> str | None:
        try:
            return await self.store.get(key.value)
        except CacheUnavailableError as e:
            logger.warning("cache_get_failed", key=key.value, error=str(e))
            return None

    async def _set(self, key: CacheKey, payload: str) -> None:
        ttl = self.ttls.for_policy(key.policy)
        try:
            await self.store.set(key.value, payload, ttl)
        except CacheUnavailableError as e:
            logger.warning("cache_store_failed", key=key.value, error=str(e))
