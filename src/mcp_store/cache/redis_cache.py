"""Redis-backed response cache."""

import json
import math
import time
from typing import Any, Callable, Optional

from loguru import logger
from redis import asyncio as aioredis

from ..config import Config
from ..redis_client import RedisProvider
from .models import CacheLookup, RouteCache


class RedisCache(RouteCache):
    """
    Response cache stored as one Redis hash per key.

    Hash fields: ``value`` (JSON), ``inserted_at`` (epoch seconds), ``ttl``
    and ``hit_count``. Hits are counted with HINCRBY so concurrent readers in
    other processes never lose an increment. Writes replace the hash and set
    its expiry in one MULTI/EXEC transaction.

    Features:
    - Lazy TTL check on read, plus a key EXPIRE so abandoned entries are reclaimed
    - Fail-safe: any Redis error is logged and treated as a miss or a skipped write
    """

    def __init__(
        self,
        provider: RedisProvider,
        ttl_seconds: float,
        key_prefix: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(ttl_seconds)
        self._provider = provider
        self._redis_client: Optional[aioredis.Redis] = None
        self._prefix = key_prefix if key_prefix is not None else Config.CACHE_KEY_PREFIX
        self._clock = clock

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis_client is None:
            self._redis_client = await self._provider.get_client()
        return self._redis_client

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> CacheLookup:
        redis_key = self._key(key)
        try:
            redis = await self._get_redis()
            data = await redis.hgetall(redis_key)
            if not data:
                return CacheLookup.miss()

            age = max(0.0, self._clock() - float(data["inserted_at"]))
            if age > float(data.get("ttl", self.ttl_seconds)):
                await redis.delete(redis_key)
                logger.debug(f"Cache entry expired: {key[:12]}")
                return CacheLookup.miss()

            value = json.loads(data["value"])
            async with redis.pipeline(transaction=True) as pipe:
                pipe.hincrby(redis_key, "hit_count", 1)
                pipe.ttl(redis_key)
                hit_count, remaining = await pipe.execute()

            # The key vanished between reads and HINCRBY recreated it bare.
            if remaining < 0:
                await redis.delete(redis_key)
                logger.debug(f"Cache entry vanished during read: {key[:12]}")
                return CacheLookup.miss()

            return CacheLookup(value=value, found=True, age=age, hit_count=int(hit_count))

        except (aioredis.ConnectionError, aioredis.TimeoutError) as e:
            logger.error(f"Redis connection failed in cache get: {e}, treating as miss")
            return CacheLookup.miss()
        except (KeyError, ValueError) as e:
            logger.warning(f"Corrupt cache entry {redis_key}: {e}, treating as miss")
            return CacheLookup.miss()
        except aioredis.RedisError as e:
            logger.error(f"Unexpected Redis error in cache get: {e}, treating as miss")
            return CacheLookup.miss()

    async def put(self, key: str, value: Any) -> None:
        redis_key = self._key(key)
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Response for {key[:12]} is not JSON serializable, not cached: {e}")
            return

        try:
            redis = await self._get_redis()
            async with redis.pipeline(transaction=True) as pipe:
                pipe.delete(redis_key)
                pipe.hset(
                    redis_key,
                    mapping={
                        "value": payload,
                        "inserted_at": repr(self._clock()),
                        "ttl": repr(float(self.ttl_seconds)),
                        "hit_count": 0,
                    },
                )
                pipe.expire(redis_key, math.ceil(self.ttl_seconds))
                await pipe.execute()
        except (aioredis.ConnectionError, aioredis.TimeoutError) as e:
            logger.error(f"Redis connection failed in cache put: {e}, entry not stored")
        except aioredis.RedisError as e:
            logger.error(f"Unexpected Redis error in cache put: {e}, entry not stored")

    async def health(self) -> tuple[bool, str]:
        return await self._provider.health()

    async def close(self) -> None:
        self._redis_client = None
        await self._provider.close()
