"""Cache port and adapters for the short-link engine.

Components never reach a global cache; they receive a :class:`CachePort`
instance built once by the service manager and passed in explicitly.

Flow Diagram — Sliding expiry on read
=====================================
::
    ┌─────────────┐
    │  get(key)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Read value   │
    │ + deadline   │
    └──────┬──────┘
    SLIDING?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌──────────────────────┐
│ Return  │  │ expiry = min(now +    │
│ value   │  │ sliding, deadline)    │
└─────────┘  └──────────┬───────────┘
                        ▼
                  ┌─────────┐
                  │ Return  │
                  │ value   │
                  └─────────┘

How to Use
===========
**Step 1 — Build from settings**::
    cache = build_cache(settings, logger)

**Step 2 — Read and write**::
    await cache.set("shortlink:resolve:docs", payload, ttl=600, sliding=120)
    value = await cache.get("shortlink:resolve:docs")

**Step 3 — Cleanup on shutdown**::
    await cache.close()

Key Behaviours
===============
- ``ttl`` is an absolute lifetime; ``sliding`` extends it on every read but
  never past the absolute deadline.
- Redis failures are logged and degrade to a miss or a no-op write.
- MemoryCache is process-local and intended for single-node runs and tests.

Classes:
    CachePort:  Protocol every adapter implements.
    RedisCache:  redis.asyncio adapter.
    MemoryCache:  In-process adapter with an injectable clock.
"""

import json
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

from shortlinks.config import Settings
from shortlinks.enums import CacheBackend

__all__ = ["CachePort", "RedisCache", "MemoryCache", "build_cache"]


class CachePort(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, *, ttl: float, sliding: float | None = None) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisCache:
    """Cache adapter over redis.asyncio.

    Sliding entries are stored as a JSON envelope holding the value, the
    absolute deadline (epoch seconds) and the sliding window, so that any
    instance can extend the key's TTL on read without extra keys.
    """

    def __init__(
        self,
        client: redis.Redis,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._logger = logger or logging.getLogger("shortlinks")
        self._clock = clock

    @classmethod
    def from_url(cls, url: str, logger: logging.Logger | None = None) -> "RedisCache":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True), logger)

    async def get(self, key: str) -> str | None:
        try:
            raw = await self._client.get(key)
        except redis.RedisError as exc:
            self._logger.warning(f"Cache read failed for {key}: {exc}")
            return None
        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            value = envelope["v"]
        except (ValueError, KeyError, TypeError) as exc:
            self._logger.error(f"Cache envelope corrupted for {key}: {exc}")
            await self.remove(key)
            return None

        sliding = envelope.get("s")
        if sliding:
            remaining = envelope["d"] - self._clock()
            if remaining <= 0:
                await self.remove(key)
                return None
            try:
                await self._client.pexpire(key, math.ceil(min(sliding, remaining) * 1000))
            except redis.RedisError as exc:
                self._logger.warning(f"Cache sliding refresh failed for {key}: {exc}")
        return value

    async def set(self, key: str, value: str, *, ttl: float, sliding: float | None = None) -> None:
        envelope: dict[str, object] = {"v": value}
        expiry = ttl
        if sliding:
            envelope["d"] = self._clock() + ttl
            envelope["s"] = sliding
            expiry = min(ttl, sliding)
        try:
            await self._client.set(key, json.dumps(envelope), px=math.ceil(expiry * 1000))
        except redis.RedisError as exc:
            self._logger.warning(f"Cache write failed for {key}: {exc}")

    async def remove(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except redis.RedisError as exc:
            self._logger.warning(f"Cache delete failed for {key}: {exc}")

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()


@dataclass
class _Entry:
    value: str
    expires_at: float
    deadline: float
    sliding: float | None


class MemoryCache:
    """Process-local cache with the same absolute/sliding semantics as RedisCache."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, _Entry] = {}
        self._clock = clock

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if now >= entry.expires_at:
            del self._entries[key]
            return None
        if entry.sliding:
            entry.expires_at = min(now + entry.sliding, entry.deadline)
        return entry.value

    async def set(self, key: str, value: str, *, ttl: float, sliding: float | None = None) -> None:
        now = self._clock()
        deadline = now + ttl
        expires_at = min(deadline, now + sliding) if sliding else deadline
        self._entries[key] = _Entry(value=value, expires_at=expires_at, deadline=deadline, sliding=sliding)

    async def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def build_cache(settings: Settings, logger: logging.Logger | None = None) -> CachePort:
    if settings.CACHE_BACKEND is CacheBackend.MEMORY:
        return MemoryCache()
    return RedisCache.from_url(settings.REDIS_URL, logger)
