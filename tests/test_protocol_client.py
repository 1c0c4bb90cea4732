"""Tests for the HTTP protocol client against mocked tool servers."""
import asyncio
import json

import httpx
import pytest

from mcp_store.errors import (
    EnvelopeError,
    MalformedStream,
    ProtocolFailure,
    StreamTimeout,
    TransportFailure,
)
from mcp_store.protocol import EnvCredentialResolver, ProtocolClient
from tests.test_utils import StalledStream, make_server

pytestmark = [pytest.mark.unit]

SMITHERY_SERVER = make_server(
    "@smithery/weather-pro", endpoint="https://server.smithery.ai/@smithery/weather-pro/mcp"
)
PLAIN_SERVER = make_server("open-meteo", endpoint="https://open-meteo.example.com/mcp")


class RecordingHandler:
    """MockTransport handler that records requests and answers from a callback."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []
        self.bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        self.bodies.append(body)
        return self.respond(body)


def _result(body, result=None, **kwargs):
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "id": body["id"], "result": result or {"ok": True}}, **kwargs
    )


def _client(handler, **kwargs):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("handshake_hosts", ["server.smithery.ai"])
    return ProtocolClient(http_client=http, **kwargs)


# ============================================================================
# SESSION HANDSHAKE
# ============================================================================


@pytest.mark.asyncio
async def test_session_token_from_handshake_is_sent_with_call():
    def respond(body):
        if body["method"] == "initialize":
            return _result(body, {"protocolVersion": "2024-11-05"}, headers={"Mcp-Session-Id": "sess-123"})
        return _result(body, {"content": [{"type": "text", "text": "22C"}]})

    handler = RecordingHandler(respond)
    client = _client(handler)

    result = await client.call_tool(SMITHERY_SERVER, "get_current_weather", {"location": "Tokyo"})

    assert result == {"content": [{"type": "text", "text": "22C"}]}
    assert [b["method"] for b in handler.bodies] == ["initialize", "tools/call"]
    assert "mcp-session-id" not in handler.requests[0].headers
    assert handler.requests[1].headers["mcp-session-id"] == "sess-123"
    assert client.sessions.get(SMITHERY_SERVER.id) == "sess-123"


@pytest.mark.asyncio
async def test_repeat_handshake_does_not_send_previous_token():
    issued = iter(["sess-1", "sess-2"])

    def respond(body):
        if body["method"] == "initialize":
            return _result(body, headers={"Mcp-Session-Id": next(issued)})
        return _result(body)

    handler = RecordingHandler(respond)
    client = _client(handler)

    await client.call_tool(SMITHERY_SERVER, "get_forecast", {})
    await client.call_tool(SMITHERY_SERVER, "get_forecast", {})

    sent = [
        (body["method"], request.headers.get("mcp-session-id"))
        for body, request in zip(handler.bodies, handler.requests)
    ]
    assert sent == [
        ("initialize", None),
        ("tools/call", "sess-1"),
        ("initialize", None),
        ("tools/call", "sess-2"),
    ]


@pytest.mark.asyncio
async def test_handshake_without_token_clears_previous_session():
    tokens = iter(["sess-1", None])

    def respond(body):
        if body["method"] == "initialize":
            token = next(tokens)
            return _result(body, headers={"Mcp-Session-Id": token} if token else {})
        return _result(body)

    handler = RecordingHandler(respond)
    client = _client(handler)

    await client.call_tool(SMITHERY_SERVER, "get_forecast", {})
    await client.call_tool(SMITHERY_SERVER, "get_forecast", {})

    assert "mcp-session-id" not in handler.requests[3].headers
    assert SMITHERY_SERVER.id not in client.sessions


@pytest.mark.asyncio
async def test_initialize_envelope():
    handler = RecordingHandler(_result)
    await _client(handler).call_tool(SMITHERY_SERVER, "get_forecast", {})

    init = handler.bodies[0]
    assert init["jsonrpc"] == "2.0"
    assert init["params"]["protocolVersion"] == "2024-11-05"
    assert init["params"]["capabilities"] == {}
    assert init["params"]["clientInfo"]["name"] == "mcp-store-router"


@pytest.mark.asyncio
async def test_plain_server_skips_handshake():
    handler = RecordingHandler(_result)
    await _client(handler).call_tool(PLAIN_SERVER, "forecast", {"location": "Paris"})

    assert [b["method"] for b in handler.bodies] == ["tools/call"]
    assert handler.bodies[0]["params"] == {"name": "forecast", "arguments": {"location": "Paris"}}


def test_requires_session_by_host_or_tag():
    client = ProtocolClient(handshake_hosts=["smithery.ai"])
    assert client.requires_session(SMITHERY_SERVER)
    assert not client.requires_session(PLAIN_SERVER)
    assert not client.requires_session(make_server("x", endpoint="https://notsmithery.ai/mcp"))
    assert client.requires_session(make_server("tagged", tags=("session-required",)))


@pytest.mark.asyncio
async def test_failed_handshake_stops_the_call():
    def respond(body):
        return httpx.Response(401, json={"error": "unauthorized"})

    handler = RecordingHandler(respond)
    with pytest.raises(ProtocolFailure) as exc_info:
        await _client(handler).call_tool(SMITHERY_SERVER, "get_forecast", {})

    assert exc_info.value.http_status == 401
    assert len(handler.requests) == 1


# ============================================================================
# REQUEST SHAPE
# ============================================================================


@pytest.mark.asyncio
async def test_request_headers_and_credentials():
    handler = RecordingHandler(_result)
    credentials = EnvCredentialResolver(
        prefix="TOKEN_", environ={"TOKEN_OPEN_METEO": "secret"}
    )
    await _client(handler, credentials=credentials).call_tool(PLAIN_SERVER, "forecast", {})

    headers = handler.requests[0].headers
    assert headers["accept"] == "application/json, text/event-stream"
    assert headers["content-type"] == "application/json"
    assert headers["authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_request_ids_increase():
    handler = RecordingHandler(_result)
    client = _client(handler)
    await client.call_tool(PLAIN_SERVER, "a", {})
    await client.call_tool(PLAIN_SERVER, "b", {})
    first, second = (b["id"] for b in handler.bodies)
    assert second > first


# ============================================================================
# RESPONSES AND FAILURES
# ============================================================================


@pytest.mark.asyncio
async def test_event_stream_response():
    def respond(body):
        event = {"jsonrpc": "2.0", "id": body["id"], "result": {"price": 64000}}
        content = f"event: message\ndata: {json.dumps(event)}\n\n"
        return httpx.Response(200, text=content, headers={"content-type": "text/event-stream"})

    result = await _client(RecordingHandler(respond)).call_tool(PLAIN_SERVER, "price", {})
    assert result == {"price": 64000}


@pytest.mark.asyncio
async def test_envelope_error_is_raised():
    def respond(body):
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32602, "message": "Invalid params"}},
        )

    with pytest.raises(EnvelopeError) as exc_info:
        await _client(RecordingHandler(respond)).call_tool(PLAIN_SERVER, "forecast", {})

    assert exc_info.value.code == -32602
    assert "Invalid params" in exc_info.value.message
    assert exc_info.value.status == 502


@pytest.mark.asyncio
async def test_http_error_status():
    def respond(body):
        return httpx.Response(500, text="Internal Server Error")

    with pytest.raises(ProtocolFailure) as exc_info:
        await _client(RecordingHandler(respond)).call_tool(PLAIN_SERVER, "forecast", {})
    assert exc_info.value.to_dict()["http_status"] == 500


@pytest.mark.asyncio
async def test_connection_error_is_transport_failure():
    def respond(body):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(TransportFailure):
        await _client(RecordingHandler(respond)).call_tool(PLAIN_SERVER, "forecast", {})


@pytest.mark.asyncio
async def test_malformed_body():
    def respond(body):
        return httpx.Response(200, text="<html>oops</html>", headers={"content-type": "text/html"})

    with pytest.raises(MalformedStream) as exc_info:
        await _client(RecordingHandler(respond)).call_tool(PLAIN_SERVER, "forecast", {})
    assert exc_info.value.details["body_preview"] == "<html>oops</html>"


# ============================================================================
# STREAMS THAT NEVER CLOSE
# ============================================================================


@pytest.mark.asyncio
async def test_returns_as_soon_as_envelope_is_complete():
    streams = []

    def respond(body):
        event = {"jsonrpc": "2.0", "id": body["id"], "result": {"ok": True}}
        stream = StalledStream(f"event: message\ndata: {json.dumps(event)}\n\n".encode())
        streams.append(stream)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    client = _client(RecordingHandler(respond), chunk_timeout=10, total_timeout=20)

    result = await asyncio.wait_for(client.call_tool(PLAIN_SERVER, "forecast", {}), timeout=2)

    assert result == {"ok": True}
    assert streams[0].closed


@pytest.mark.asyncio
async def test_stalled_partial_stream_times_out():
    def respond(body):
        stream = StalledStream(b'data: {"jsonrpc": "2.0", "id": ')
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    client = _client(RecordingHandler(respond), chunk_timeout=0.05, total_timeout=1)

    with pytest.raises(StreamTimeout) as exc_info:
        await client.call_tool(PLAIN_SERVER, "forecast", {})
    assert exc_info.value.status == 502
    assert exc_info.value.details["body_preview"].startswith("data:")


@pytest.mark.asyncio
async def test_complete_unterminated_event_is_used_on_deadline():
    def respond(body):
        event = {"jsonrpc": "2.0", "id": body["id"], "result": {"late": True}}
        stream = StalledStream(f"data: {json.dumps(event)}".encode())
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    client = _client(RecordingHandler(respond), chunk_timeout=0.05, total_timeout=1)
    assert await client.call_tool(PLAIN_SERVER, "forecast", {}) == {"late": True}
