"""
KPI Cache Module

Cache backends for the KPI aggregator:
- Redis connection pooling
- JSON serialization
- TTL management
- Tag-based invalidation (store and list tags)
"""

import json
import threading
from typing import Any, Dict, Iterable, Optional, Tuple

import structlog
from redis import ConnectionPool, Redis, RedisError

from vendor_analytics.analytics.interfaces import Clock, SystemClock
from vendor_analytics.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )

    _redis_client = Redis(connection_pool=_redis_pool)

    # Test connection
    try:
        _redis_client.ping()
        logger.info("Redis connection established")
    except RedisError as e:
        logger.error("Redis connection failed", error_type=type(e).__name__)
        raise

    return _redis_client


def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        _redis_client.close()
        _redis_client = None

    if _redis_pool:
        _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


class RedisTagCache:
    """
    Redis-backed cache with namespace and tag support.

    Each tag is a Redis set ``<namespace>:tag:<tag>`` holding the keys
    written under it; invalidating a tag deletes those keys and the set.
    Redis failures are logged and treated as a miss so that KPI reads keep
    working without the cache.

    Example:
        cache = RedisTagCache(get_redis(), namespace="analytics")
        cache.set("vendor_kpi:42:0:100:AUD", kpis, 300, ["store:42"])
        cache.invalidate_tags(["store:42"])
    """

    def __init__(self, client: Optional[Redis] = None, namespace: str = "analytics"):
        self.client = client
        self.namespace = namespace

    def _client(self) -> Redis:
        return self.client if self.client is not None else get_redis()

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.namespace}:tag:{tag}"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Get value from cache, None on miss"""
        try:
            value = self._client().get(self._key(key))
        except RedisError as e:
            logger.warning("Cache read failed", error_type=type(e).__name__)
            return None

        if value is None:
            return None

        try:
            decoded = json.loads(value)
        except (TypeError, ValueError):
            logger.warning("Discarding undecodable cache entry", cache_key=key)
            return None
        return decoded if isinstance(decoded, dict) else None

    def set(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: int,
        tags: Iterable[str] = (),
    ) -> bool:
        """
        Set value in cache and register it under each tag.

        Returns:
            True if successful
        """
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize value for cache", error_type=type(e).__name__)
            return False

        full_key = self._key(key)
        try:
            pipe = self._client().pipeline()
            pipe.setex(full_key, ttl_seconds, serialized)
            for tag in tags:
                tag_key = self._tag_key(tag)
                pipe.sadd(tag_key, full_key)
                pipe.expire(tag_key, ttl_seconds)
            pipe.execute()
        except RedisError as e:
            logger.warning("Cache write failed", error_type=type(e).__name__)
            return False

        return True

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """Delete every key registered under the tags; returns keys removed"""
        tags = list(tags)
        client = self._client()
        removed = 0

        for tag in tags:
            tag_key = self._tag_key(tag)
            keys = client.smembers(tag_key)
            if keys:
                removed += client.delete(*keys)
            client.delete(tag_key)

        logger.debug("Cache tags invalidated", tags=tags, removed=removed)
        return removed


class InMemoryTagCache:
    """
    Process-local cache with the same contract as RedisTagCache.

    Used for tests and single-process deployments. Expired entries and their
    tag memberships are swept on write, at most once per sweep interval.
    """

    def __init__(self, clock: Optional[Clock] = None, sweep_interval_seconds: int = 60):
        self.clock = clock or SystemClock()
        self.sweep_interval_seconds = sweep_interval_seconds
        self._entries: Dict[str, Tuple[int, str]] = {}
        self._tags: Dict[str, set] = {}
        self._next_sweep_at = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            expires_at, serialized = entry
            if self.clock.now() >= expires_at:
                del self._entries[key]
                return None

        return json.loads(serialized)

    def set(
        self,
        key: str,
        value: Dict[str, Any],
        ttl_seconds: int,
        tags: Iterable[str] = (),
    ) -> bool:
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize value for cache", error_type=type(e).__name__)
            return False

        with self._lock:
            now = self.clock.now()
            if now >= self._next_sweep_at:
                self._sweep(now)
                self._next_sweep_at = now + self.sweep_interval_seconds

            self._entries[key] = (now + ttl_seconds, serialized)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)
        return True

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for tag in tags:
                for key in self._tags.pop(tag, set()):
                    if self._entries.pop(key, None) is not None:
                        removed += 1
        return removed

    def purge_expired(self) -> int:
        """Drop expired entries and empty tag sets; returns entries removed"""
        with self._lock:
            return self._sweep(self.clock.now())

    def _sweep(self, now: int) -> int:
        # Caller holds the lock
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

        for tag in list(self._tags):
            live = {key for key in self._tags[tag] if key in self._entries}
            if live:
                self._tags[tag] = live
            else:
                del self._tags[tag]

        if expired:
            logger.debug("Expired cache entries swept", removed=len(expired))
        return len(expired)
