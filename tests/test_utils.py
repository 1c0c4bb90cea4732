"""Shared utilities for testing router components."""

import asyncio
from typing import Any, Optional

import httpx

from mcp_store.registry import ServerDescriptor, ToolDescriptor, YamlRegistry


def make_tool(name: str, description: str = "", properties: Optional[dict] = None) -> ToolDescriptor:
    """Create a ToolDescriptor; ``properties`` becomes an object input schema."""
    schema = {"type": "object", "properties": properties} if properties is not None else {}
    return ToolDescriptor(name=name, description=description, input_schema=schema)


def make_server(server_id: str, **overrides: Any) -> ServerDescriptor:
    """
    Create a ServerDescriptor for testing with sensible defaults.

    Args:
        server_id: Server identifier (also used to derive name and endpoint)
        **overrides: Override any ServerDescriptor fields

    Returns:
        ServerDescriptor instance
    """
    fields: dict[str, Any] = {
        "id": server_id,
        "qualified_name": server_id,
        "display_name": server_id.replace("-", " ").title(),
        "endpoint": f"https://{server_id}.example.com/mcp",
        "description": "",
        "category": "General",
        "capabilities": (),
        "tools": (make_tool("run"),),
        "trust_score": 50,
        "verified": False,
        "use_count": 0,
        "tags": (),
    }
    fields.update(overrides)
    return ServerDescriptor(**fields)


class FakeProtocol:
    """Protocol client stand-in that records calls and returns a canned result."""

    def __init__(self, result: Any = None, error: Optional[Exception] = None):
        self.result = result if result is not None else {"content": [{"type": "text", "text": "ok"}]}
        self.error = error
        self.calls: list[tuple[str, str, dict]] = []
        self.closed = False

    async def call_tool(self, server, tool_name, arguments):
        self.calls.append((server.id, tool_name, arguments))
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self):
        self.closed = True


class FailingRegistry(YamlRegistry):
    """Registry whose every read raises."""

    async def discover(self, query):
        raise ConnectionError("registry unavailable")

    async def get_all_servers(self):
        raise ConnectionError("registry unavailable")


class FakePipeline:
    """Queues commands and applies them together on ``execute``, all or nothing."""

    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.commands: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self

        return queue

    async def execute(self):
        snapshot = ({k: dict(v) for k, v in self.redis.hashes.items()}, dict(self.redis.expirations))
        results = []
        try:
            for name, args, kwargs in self.commands:
                results.append(await getattr(self.redis, name)(*args, **kwargs))
        except Exception:
            self.redis.hashes, self.redis.expirations = snapshot
            raise
        self.redis.transactions.append([name for name, _, _ in self.commands])
        self.commands = []
        return results

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.commands = []


class FakeRedis:
    """Minimal async Redis hash store used by RedisCache tests."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.expirations: dict[str, int] = {}
        self.transactions: list[list[str]] = []

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})
        return len(mapping)

    async def hincrby(self, key, field, amount=1):
        entry = self.hashes.setdefault(key, {})
        current = int(entry.get(field, 0)) + amount
        entry[field] = str(current)
        return current

    async def expire(self, key, seconds):
        self.expirations[key] = seconds
        return True

    async def ttl(self, key):
        if key not in self.hashes:
            return -2
        return self.expirations.get(key, -1)

    async def delete(self, key):
        self.expirations.pop(key, None)
        return 1 if self.hashes.pop(key, None) is not None else 0


class StalledStream(httpx.AsyncByteStream):
    """Response body that yields the given chunks and then never ends."""

    def __init__(self, *chunks: bytes):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        # Hold the connection open like servers that never close the stream.
        await asyncio.sleep(3600)

    async def aclose(self):
        self.closed = True


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
