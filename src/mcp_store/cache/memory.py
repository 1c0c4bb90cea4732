"""In-process response cache."""

import time
from typing import Any, Callable

from loguru import logger

from .models import CacheEntry, CacheLookup, RouteCache


class MemoryCache(RouteCache):
    """
    Dictionary-backed cache owned by one engine instance.

    There is no background sweep: an entry is only checked, and dropped, when
    it is read after its TTL. ``get`` and ``put`` contain no suspension point,
    so the read-modify-write of ``hit_count`` is atomic under asyncio.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        super().__init__(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> CacheLookup:
        entry = self._entries.get(key)
        if entry is None:
            return CacheLookup.miss()

        now = self._clock()
        if entry.is_expired(now):
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key[:12]}")
            return CacheLookup.miss()

        entry.hit_count += 1
        return CacheLookup(
            value=entry.value,
            found=True,
            age=entry.age(now),
            hit_count=entry.hit_count,
        )

    async def put(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            inserted_at=self._clock(),
            ttl=self.ttl_seconds,
        )

    async def close(self) -> None:
        self._entries.clear()
