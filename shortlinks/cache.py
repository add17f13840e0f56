"""Redis-backed resolution cache for short link lookups.

The cache is a best-effort, time-bounded mirror of individual link records
keyed by short code. It is never written by mutations and never treated as
authoritative: the link store is the source of truth.

Flow Diagram — Cache-aside on resolve
=====================================
::
    ┌─────────────┐
    │ get(code)   │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Query   │  │ Use     │
│ store   │  │ snapshot│
└────┬────┘  └─────────┘
     ▼
┌─────────┐
│ put()   │
│ SETEX   │
│ 3600s   │
└─────────┘

How to Use
===========
**Step 1 — Build with an explicitly created client**::
    client = connect_redis(settings.REDIS_URL)
    cache = ResolutionCache(client, ttl_seconds=settings.CACHE_TTL_SECONDS)

**Step 2 — Lookup and populate**::
    entry = await cache.get("abc123")
    if entry is None:
        await cache.put(CachedLinkEntry.model_validate(link))

**Step 3 — Cleanup on shutdown**::
    await client.aclose()

Key Behaviours
===============
- Keys are ``<prefix>:<short_code>``; a single fixed TTL is used for every entry.
- Writes are unconditional overwrites; concurrent misses write equivalent data.
- Redis errors and undecodable payloads are logged and reported as a miss.
- Failed writes are logged and dropped; the caller proceeds without caching.

Classes:
    ResolutionCache:  get/put/invalidate over CachedLinkEntry snapshots.

Functions:
    connect_redis():  Create an asyncio Redis client from a URL.
"""

import logging

import redis.asyncio as redis
from pydantic import ValidationError

from shortlinks.schemas import CachedLinkEntry

__all__ = ["ResolutionCache", "connect_redis"]

DEFAULT_CACHE_TTL_SECONDS = 3600  # 1 hour


def connect_redis(url: str) -> redis.Redis:
    return redis.from_url(url, encoding="utf-8", decode_responses=True)


class ResolutionCache:
    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        key_prefix: str = "link",
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        assert ttl_seconds > 0, f"ttl_seconds must be positive, got {ttl_seconds!r}"
        self._client = client
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix
        self._logger = logger or logging.getLogger("shortlinks")

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def key_for(self, short_code: str) -> str:
        return f"{self._key_prefix}:{short_code}"

    async def get(self, short_code: str) -> CachedLinkEntry | None:
        """Return the cached snapshot for ``short_code``, or None on miss.

        Args:
            short_code: Short code to lookup

        Returns:
            Optional[CachedLinkEntry]: Snapshot if present and decodable
        """
        try:
            raw = await self._client.get(self.key_for(short_code))
        except redis.RedisError as exc:
            self._logger.warning(f"Cache read failed for {short_code}: {exc}")
            return None

        if not raw:
            return None

        try:
            return CachedLinkEntry.model_validate_json(raw)
        except ValidationError as exc:
            self._logger.error(f"Cache deserialization error for {short_code}: {exc}")
            return None

    async def put(self, entry: CachedLinkEntry) -> None:
        """Write ``entry`` under its short code with the fixed TTL."""
        try:
            await self._client.setex(
                self.key_for(entry.short_code),
                self._ttl_seconds,
                entry.model_dump_json(),
            )
        except redis.RedisError as exc:
            self._logger.warning(f"Cache write failed for {entry.short_code}: {exc}")

    async def invalidate(self, short_code: str) -> None:
        try:
            await self._client.delete(self.key_for(short_code))
        except redis.RedisError as exc:
            self._logger.warning(f"Cache invalidation failed for {short_code}: {exc}")

    async def ping(self) -> bool:
        return bool(await self._client.ping())
