"""Pooled async Redis connections for the route cache."""

import asyncio
import time
from typing import Any, Optional, Tuple

from loguru import logger
from redis import asyncio as aioredis

from .config import Config

SLOW_OPERATION_MS = 100.0


class InstrumentedRedis(aioredis.Redis):
    """Redis client that logs commands slower than SLOW_OPERATION_MS."""

    async def execute_command(self, *args: Any, **options: Any) -> Any:
        command = "unknown"
        if args:
            command = args[0]
            if isinstance(command, bytes):
                command = command.decode("utf-8", errors="ignore")
            else:
                command = str(command)
        start_time = time.perf_counter()
        try:
            return await super().execute_command(*args, **options)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000.0
            if duration_ms > SLOW_OPERATION_MS:
                logger.warning(
                    "Slow Redis operation detected (command={}, duration_ms={:.2f})",
                    command,
                    duration_ms,
                )


class RedisProvider:
    """
    Lazily connects a pooled Redis client and hands out the same instance.

    Connection attempts back off exponentially between
    REDIS_CONNECT_RETRY_DELAY and REDIS_CONNECT_RETRY_MAX_DELAY.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        max_connections: Optional[int] = None,
        retries: Optional[int] = None,
    ):
        self.url = url or Config.REDIS_URL
        self.max_connections = max_connections or Config.REDIS_MAX_CONNECTIONS
        self.retries = retries or Config.REDIS_CONNECT_RETRIES
        self._client: Optional[aioredis.Redis] = None
        self._pool: Optional[aioredis.ConnectionPool] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def get_client(self) -> aioredis.Redis:
        """
        Return the shared client, connecting on first use.

        Raises:
            redis.ConnectionError / redis.TimeoutError: once retries are exhausted
        """
        if self._client is not None:
            self._log_pool_stats("reuse")
            return self._client

        for attempt in range(1, self.retries + 1):
            try:
                if self._pool is None:
                    self._pool = aioredis.ConnectionPool.from_url(
                        self.url,
                        encoding="utf-8",
                        decode_responses=True,
                        max_connections=self.max_connections,
                        socket_connect_timeout=Config.REDIS_SOCKET_CONNECT_TIMEOUT,
                        socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                    )
                client = InstrumentedRedis(connection_pool=self._pool)
                await client.ping()
                self._client = client
                self._log_pool_stats("ready")
                return client
            except (aioredis.ConnectionError, aioredis.TimeoutError) as exc:
                logger.warning(
                    "Redis connection attempt {}/{} failed: {}",
                    attempt,
                    self.retries,
                    exc,
                )
                await self.close()
                if attempt >= self.retries:
                    logger.error("Redis connection retries exhausted")
                    raise
                backoff = min(
                    Config.REDIS_CONNECT_RETRY_DELAY * (2 ** (attempt - 1)),
                    Config.REDIS_CONNECT_RETRY_MAX_DELAY,
                )
                await asyncio.sleep(backoff)

        raise aioredis.ConnectionError("Redis connection retries exhausted")

    def _log_pool_stats(self, context: str) -> None:
        if self._pool is None:
            return
        logger.debug(
            "Redis pool {}: in_use={}, idle={}, max={}",
            context,
            len(getattr(self._pool, "_in_use_connections", ())),
            len(getattr(self._pool, "_available_connections", ())),
            self._pool.max_connections,
        )

    async def close(self) -> None:
        """Close the client and disconnect the pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

    async def health(self) -> Tuple[bool, str]:
        """Ping Redis and describe the outcome."""
        try:
            client = await self.get_client()
            result = await client.ping()
            if result is True or result == "PONG":
                return True, "Redis ping succeeded"
            return False, f"Unexpected Redis ping response: {result}"
        except (aioredis.ConnectionError, aioredis.TimeoutError) as exc:
            return False, f"Redis connection failed: {exc}"
        except aioredis.RedisError as exc:
            return False, f"Redis health check error: {exc}"
