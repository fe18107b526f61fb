"""Cache store adapter: best-effort cache-aside over Redis.

Values are stored as JSON text. Caching is never a correctness dependency:
any store failure is logged and treated as a miss (lookup) or a skipped
write (store), and the freshly computed value is still returned.

Objects owned by the persistence layer (ORM entities with lazy relations)
are never written: they are detected by the PersistenceEntity marker or by
SQLAlchemy instrumentation, and returned to the caller uncached.

No client-side locking: concurrent misses on the same key may both compute,
and the store's last write wins.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import InstanceState

from interview_eval.core.metrics import CACHE_LOOKUPS
from interview_eval.errors import CacheError, ParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TTL = timedelta | int  # int = seconds


class PersistenceEntity:
    """Marker mixin for persistence-layer objects that must never be cached."""

    __persistence_entity__ = True


def is_persistence_entity(value: Any) -> bool:
    """True for marked or SQLAlchemy-mapped objects, or containers holding any."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return any(is_persistence_entity(item) for item in value)
    if isinstance(value, dict):
        return any(is_persistence_entity(item) for item in value.values())
    if getattr(type(value), "__persistence_entity__", False):
        return True
    return isinstance(sa_inspect(value, raiseerr=False), InstanceState)


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    return value


def _encode(value: Any) -> str:
    return json.dumps(_to_jsonable(value), ensure_ascii=False, separators=(",", ":"))


def _ttl_seconds(ttl: TTL | None) -> int | None:
    if ttl is None:
        return None
    seconds = int(ttl.total_seconds()) if isinstance(ttl, timedelta) else int(ttl)
    return seconds if seconds > 0 else None


def _expired_on_arrival(ttl: TTL | None) -> bool:
    # None means no expiry; a zero or negative lifetime means nothing to store
    return ttl is not None and _ttl_seconds(ttl) is None


class CacheStore:
    """Async cache-aside primitives over a redis.asyncio client."""

    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> CacheStore:
        return cls(Redis.from_url(url, decode_responses=True))

    # ------------------------------------------------------------------
    # Internal read/write, raising CacheError
    # ------------------------------------------------------------------

    async def _read(self, key: str, decode: Callable[[Any], T] | None) -> T | None:
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            raise CacheError(f"Lookup failed for {key}: {e}") from e
        if raw is None:
            return None
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
            return decode(data) if decode is not None else data
        except (ValueError, TypeError, KeyError, ParseError) as e:
            raise CacheError(f"Undecodable cache entry for {key}: {e}") from e

    async def _write(self, key: str, value: Any, ttl: TTL | None) -> None:
        try:
            payload = _encode(value)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for {key} is not serializable: {e}") from e
        try:
            await self.client.set(key, payload, ex=_ttl_seconds(ttl))
        except RedisError as e:
            raise CacheError(f"Write failed for {key}: {e}") from e

    # ------------------------------------------------------------------
    # Cache-aside
    # ------------------------------------------------------------------

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        ttl: TTL | None,
        decode: Callable[[Any], T] | None = None,
    ) -> T:
        """Return the cached value for ``key`` or compute, store and return it.

        ``compute`` runs at most once per call and its exceptions propagate.
        ``decode`` rebuilds the typed value from the stored JSON tree.
        """
        try:
            cached = await self._read(key, decode)
        except CacheError as e:
            CACHE_LOOKUPS.labels(result="error").inc()
            logger.error("Cache error for key %s, computing directly: %s", key, e, extra={"cache_key": key})
            cached = None
        else:
            if cached is not None:
                CACHE_LOOKUPS.labels(result="hit").inc()
                logger.debug("Cache HIT for key: %s", key)
                return cached
            CACHE_LOOKUPS.labels(result="miss").inc()
            logger.debug("Cache MISS for key: %s", key)

        computed = await compute()

        if computed is None:
            return computed
        if _expired_on_arrival(ttl):
            logger.debug("Non-positive TTL for key %s, not caching", key)
            return computed
        if is_persistence_entity(computed):
            logger.warning("Not caching persistence entity %s for key %s", type(computed).__name__, key)
            return computed

        try:
            await self._write(key, computed, ttl)
            logger.debug("Cached value for key: %s", key)
        except CacheError as e:
            logger.error("Cache write skipped for key %s: %s", key, e, extra={"cache_key": key})
        return computed

    # ------------------------------------------------------------------
    # Pass-throughs
    # ------------------------------------------------------------------

    async def put(self, key: str, value: Any, ttl: TTL | None) -> bool:
        """Store ``value`` unless it is None, a persistence entity or already expired."""
        if value is None or _expired_on_arrival(ttl):
            return False
        if is_persistence_entity(value):
            logger.warning("Refusing to cache persistence entity %s for key %s", type(value).__name__, key)
            return False
        try:
            await self._write(key, value, ttl)
        except CacheError as e:
            logger.error("Cache put failed: %s", e)
            return False
        return True

    async def get(self, key: str, decode: Callable[[Any], T] | None = None) -> T | None:
        try:
            return await self._read(key, decode)
        except CacheError as e:
            logger.error("Cache get failed: %s", e)
            return None

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(key))
        except RedisError as e:
            logger.error("Cache exists failed for key %s: %s", key, e)
            return False

    async def invalidate(self, key: str) -> int:
        try:
            deleted = await self.client.delete(key)
        except RedisError as e:
            logger.error("Cache invalidate failed for key %s: %s", key, e)
            return 0
        logger.debug("Invalidated cache for key: %s", key)
        return int(deleted)

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern (e.g. ``ai_questions:*``)."""
        try:
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if not keys:
                return 0
            deleted = await self.client.delete(*keys)
        except RedisError as e:
            logger.error("Cache pattern invalidation failed for %s: %s", pattern, e)
            return 0
        logger.debug("Invalidated %d keys matching pattern: %s", deleted, pattern)
        return int(deleted)

    async def increment(self, key: str) -> int | None:
        try:
            return int(await self.client.incr(key))
        except RedisError as e:
            logger.error("Cache increment failed for key %s: %s", key, e)
            return None

    async def expire(self, key: str, ttl: TTL) -> bool:
        seconds = _ttl_seconds(ttl)
        if seconds is None:
            return False
        try:
            return bool(await self.client.expire(key, seconds))
        except RedisError as e:
            logger.error("Cache expire failed for key %s: %s", key, e)
            return False
