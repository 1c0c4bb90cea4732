"""Cache records and the backend interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class CacheEntry:
    """A stored response. ``inserted_at`` and ``ttl`` are in seconds."""

    key: str
    value: Any
    inserted_at: float
    ttl: float
    hit_count: int = 0

    def age(self, now: float) -> float:
        return max(0.0, now - self.inserted_at)

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.ttl


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read; ``age`` is in seconds and set only on a hit."""

    value: Any = None
    found: bool = False
    age: Optional[float] = None
    hit_count: int = 0

    @classmethod
    def miss(cls) -> "CacheLookup":
        return cls()


class RouteCache(ABC):
    """
    Response cache keyed by request fingerprint.

    Expired entries are never returned; expiry is evaluated lazily on read.
    Implementations must not raise on infrastructure failure: a broken
    backend behaves like an empty cache.
    """

    def __init__(self, ttl_seconds: float):
        if ttl_seconds <= 0:
            raise ValueError(f"Cache TTL must be > 0, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def get(self, key: str) -> CacheLookup:
        """Return the entry for key if present and fresh, counting the hit."""

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous entry."""

    async def close(self) -> None:
        """Release backend resources."""
