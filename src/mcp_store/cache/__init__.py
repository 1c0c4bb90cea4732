"""Response cache backends."""
from typing import Optional

from ..config import Config
from ..redis_client import RedisProvider
from .keys import fingerprint
from .memory import MemoryCache
from .models import CacheEntry, CacheLookup, RouteCache
from .redis_cache import RedisCache


def build_cache(backend: Optional[str] = None, ttl_seconds: Optional[float] = None) -> RouteCache:
    """
    Create the configured cache backend.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = (backend or Config.CACHE_BACKEND).lower()
    ttl = ttl_seconds if ttl_seconds is not None else Config.CACHE_TTL_SECONDS
    if backend == "memory":
        return MemoryCache(ttl)
    if backend == "redis":
        return RedisCache(RedisProvider(), ttl)
    raise ValueError(f"Unknown cache backend: '{backend}'")


__all__ = [
    "CacheEntry",
    "CacheLookup",
    "MemoryCache",
    "RedisCache",
    "RouteCache",
    "build_cache",
    "fingerprint",
]
