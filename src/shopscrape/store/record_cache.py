"""Scraped-record cache with pluggable Redis / in-memory backends.

Production deployments use Redis so cached product records survive
process restarts and are shared across replicas. Local development uses
an in-process dict that still honours TTLs.

Usage::

    from shopscrape.store.record_cache import build_record_cache, cache_key

    cache = build_record_cache(settings.cache)
    await cache.set(cache_key(url), record, ttl_seconds=21600)
    record = await cache.get(cache_key(url))
"""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import TYPE_CHECKING, Any

from shopscrape.urls import strip_tracking

if TYPE_CHECKING:
    from shopscrape.settings.config import CacheSettings

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "shopscrape:product:"


def cache_key(url: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Return the cache key for *url*.

    Tracking parameters are stripped first so links that differ only in
    campaign tags share one entry.
    """
    normalized = strip_tracking(url)
    return prefix + base64.urlsafe_b64encode(normalized.encode("utf-8")).decode("ascii")


class RecordCache:
    """Abstract-ish record cache interface implemented by every backend."""

    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached record or ``None`` on a miss."""
        raise NotImplementedError

    async def set(self, key: str, record: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        """Create or replace the entry.

        Args:
            key: Cache key (see :func:`cache_key`).
            record: JSON-serialisable record.
            ttl_seconds: Time-to-live in seconds (0 = backend default).
        """
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        """Remove an entry."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend connections."""


class NullRecordCache(RecordCache):
    """Cache that never stores anything (``backend = "none"``)."""

    async def get(self, key: str) -> dict[str, Any] | None:
        return None

    async def set(self, key: str, record: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None


class InMemoryRecordCache(RecordCache):
    """In-process cache for local development.

    Expired entries are dropped when read and swept on every write, so keys
    that are never looked up again do not accumulate.
    """

    def __init__(self, default_ttl: int = 0) -> None:
        self._data: dict[str, tuple[float | None, dict[str, Any]]] = {}
        self._default_ttl = default_ttl

    def __len__(self) -> int:
        return len(self._data)

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, record = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return None
        return record

    async def set(self, key: str, record: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        self._purge_expired()
        ttl = ttl_seconds or self._default_ttl
        expires_at = time.monotonic() + ttl if ttl > 0 else None
        self._data[key] = (expires_at, record)

    def _purge_expired(self) -> None:
        now = time.monotonic()
        expired = [k for k, (expires_at, _) in self._data.items() if expires_at is not None and now >= expires_at]
        for k in expired:
            del self._data[k]

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisRecordCache(RecordCache):
    """Redis-backed cache for production deployments.

    Records are stored as JSON with ``SETEX`` so they expire on their own.

    Args:
        redis_url: Redis connection string (e.g. ``redis://localhost:6379/0``).
        default_ttl: Default TTL in seconds (0 = no expiry).
        client: Pre-built ``redis.asyncio.Redis`` client.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        default_ttl: int = 6 * 60 * 60,
        client: Any = None,
    ) -> None:
        if client is None:
            import redis.asyncio as redis_lib

            client = redis_lib.Redis.from_url(redis_url, decode_responses=True)
        self._client = client
        self._default_ttl = default_ttl

    async def get(self, key: str) -> dict[str, Any] | None:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, record: dict[str, Any], *, ttl_seconds: int = 0) -> None:
        effective_ttl = ttl_seconds or self._default_ttl
        payload = json.dumps(record, default=str)
        if effective_ttl > 0:
            await self._client.setex(key, effective_ttl, payload)
        else:
            await self._client.set(key, payload)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_record_cache(settings: CacheSettings | None = None) -> RecordCache:
    """Return a record cache matching the ``cache`` settings section.

    Args:
        settings: The ``cache`` settings section. If None, reads from
            ``get_settings().cache``.

    Returns:
        :class:`RecordCache` instance.
    """
    if settings is None:
        from shopscrape.settings import get_settings

        settings = get_settings().cache

    backend = settings.backend.lower().strip()
    if backend == "redis":
        logger.info("Using Redis record cache at %s (ttl=%d)", settings.redis_url, settings.ttl_seconds)
        return RedisRecordCache(redis_url=settings.redis_url, default_ttl=settings.ttl_seconds)
    if backend == "none":
        logger.info("Record cache disabled")
        return NullRecordCache()
    logger.info("Using in-memory record cache")
    return InMemoryRecordCache(default_ttl=settings.ttl_seconds)
