"""End-to-end tests for RoutingEngine with a recording protocol client."""
import pytest

from mcp_store.cache import MemoryCache
from mcp_store.errors import EnvelopeError, TransportFailure
from mcp_store.registry import ServerStatus, YamlRegistry
from mcp_store.routing import RouteRequest, RoutingEngine
from tests.test_utils import FailingRegistry, FakeProtocol, make_server, make_tool

pytestmark = [pytest.mark.integration]


# ============================================================================
# SUCCESSFUL ROUTING
# ============================================================================


@pytest.mark.asyncio
async def test_weather_query_routes_to_weather_server(engine, protocol):
    response = await engine.route(RouteRequest(query="weather in Tokyo"))

    assert response["success"] is True
    assert response["result"] == {"content": [{"type": "text", "text": "ok"}]}

    metadata = response["metadata"]
    assert metadata["server"] == "Weather Pro"
    assert metadata["server_id"] == "weather-pro"
    assert metadata["tool"] == "get_current_weather"
    assert metadata["intent"]["name"] == "weather_query"
    assert metadata["entities"] == {"location": "Tokyo"}
    assert metadata["execution"] == "direct_execution"
    assert metadata["category"] == "Weather"
    assert metadata["cached"] is False
    assert 0.0 <= metadata["confidence"] <= 1.0
    assert metadata["routing_time_ms"] <= metadata["total_time_ms"]

    assert protocol.calls == [("weather-pro", "get_current_weather", {"location": "Tokyo"})]


@pytest.mark.asyncio
async def test_crypto_query_passes_ticker(engine, protocol):
    response = await engine.route(RouteRequest(query="bitcoin price"))

    assert response["success"] is True
    assert response["metadata"]["server_id"] == "coin-ticker"
    assert response["metadata"]["category"] == "Finance"
    assert response["metadata"]["intent"]["confidence"] >= 0.9
    assert protocol.calls == [("coin-ticker", "get_crypto_price", {"symbol": "BTC"})]


@pytest.mark.asyncio
async def test_explicit_params_override_entities(engine, protocol):
    request = RouteRequest(query="weather in Tokyo", params={"location": "Osaka", "units": "metric"})
    await engine.route(request)
    assert protocol.calls[0][2] == {"location": "Osaka", "units": "metric"}


@pytest.mark.asyncio
async def test_structured_intent_without_query(engine, protocol):
    response = await engine.route(RouteRequest(intent="weather_query"))

    assert response["success"] is True
    assert response["metadata"]["server_id"] == "weather-pro"
    assert response["metadata"]["intent"] == {
        "name": "weather_query",
        "confidence": 1.0,
        "matched_evidence": "structured",
    }


@pytest.mark.asyncio
async def test_present_options_does_not_invoke(engine, protocol):
    response = await engine.route(RouteRequest(query="order food for dinner"))

    assert response["success"] is True
    assert response["metadata"]["execution"] == "present_options"
    options = response["result"]["options"]
    assert options[0]["id"] == "food-finder"
    assert options[0]["tool"] == "search_restaurants"
    assert protocol.calls == []


# ============================================================================
# CACHING
# ============================================================================


@pytest.mark.asyncio
async def test_repeat_request_is_served_from_cache(engine, protocol):
    first = await engine.route(RouteRequest(query="weather in Tokyo"))
    second = await engine.route(RouteRequest(query="  Weather in tokyo "))

    assert len(protocol.calls) == 1
    assert second["success"] is True
    assert second["result"] == first["result"]
    assert second["metadata"]["cached"] is True
    assert second["metadata"]["cache_hits"] == 1
    assert second["metadata"]["cache_age_ms"] >= 0
    assert second["metadata"]["server"] == first["metadata"]["server"]
    assert second["metadata"]["tool"] == first["metadata"]["tool"]
    # The first response is not mutated by the cache hit.
    assert first["metadata"]["cached"] is False


@pytest.mark.asyncio
async def test_cached_value_is_isolated_from_callers(engine):
    first = await engine.route(RouteRequest(query="weather in Tokyo"))
    first["result"]["content"].append("tampered")

    second = await engine.route(RouteRequest(query="weather in Tokyo"))
    assert second["result"] == {"content": [{"type": "text", "text": "ok"}]}


@pytest.mark.asyncio
async def test_different_capabilities_are_cached_separately(engine, protocol):
    await engine.route(RouteRequest(query="weather in Tokyo"))
    await engine.route(RouteRequest(query="weather in Tokyo", capabilities=("forecast",)))
    assert len(protocol.calls) == 2


# ============================================================================
# FAILURES
# ============================================================================


@pytest.mark.asyncio
async def test_no_candidates_is_404(engine, protocol):
    response = await engine.route(RouteRequest(query="tell me a joke about penguins"))

    assert response["success"] is False
    assert response["status"] == 404
    assert response["error"] == "No suitable server found"
    assert response["error_type"] == "NoCandidateServer"
    assert "total_time_ms" in response
    assert protocol.calls == []
    assert len(engine.cache) == 0


@pytest.mark.asyncio
async def test_registry_outage_is_503(protocol):
    engine = RoutingEngine(FailingRegistry(), cache=MemoryCache(60), protocol=protocol)
    response = await engine.route(RouteRequest(query="weather in Tokyo"))

    assert response["success"] is False
    assert response["status"] == 503
    assert response["error_type"] == "RetrievalFailure"
    assert set(response["strategy_errors"]) == {"narrow", "expanded", "broad"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, error_type",
    [
        (TransportFailure("connect timed out"), "TransportFailure"),
        (EnvelopeError("Tool server error: bad input", code=-32602), "EnvelopeError"),
    ],
)
async def test_downstream_failure_is_502_and_not_cached(registry, error, error_type):
    protocol = FakeProtocol(error=error)
    engine = RoutingEngine(registry, cache=MemoryCache(60), protocol=protocol)

    response = await engine.route(RouteRequest(query="weather in Tokyo"))

    assert response["success"] is False
    assert response["status"] == 502
    assert response["error_type"] == error_type
    assert response["server_id"] == "weather-pro"
    assert response["tool"] == "get_current_weather"
    assert len(engine.cache) == 0

    # A retry reaches the tool server again.
    await engine.route(RouteRequest(query="weather in Tokyo"))
    assert len(protocol.calls) == 2


@pytest.mark.asyncio
async def test_unexpected_error_is_500(registry):
    engine = RoutingEngine(registry, protocol=FakeProtocol(error=RuntimeError("kaboom")))

    response = await engine.route(RouteRequest(query="weather in Tokyo"))

    assert response["success"] is False
    assert response["status"] == 500
    assert response["error"] == "kaboom"
    assert response["error_type"] == "RuntimeError"


@pytest.mark.asyncio
async def test_close_releases_protocol_and_cache(engine, protocol):
    await engine.route(RouteRequest(query="weather in Tokyo"))
    await engine.close()
    assert protocol.closed
    assert len(engine.cache) == 0


@pytest.mark.asyncio
async def test_general_query_is_not_narrowed_to_a_category(protocol):
    registry = YamlRegistry([make_server("jokes", description="tell me a joke about penguins")])
    engine = RoutingEngine(registry, cache=MemoryCache(60), protocol=protocol)

    response = await engine.route(RouteRequest(query="tell me a joke about penguins"))

    assert response["success"] is True
    assert response["metadata"]["category"] is None


# ============================================================================
# SERVER STATUS
# ============================================================================


def _weather_server(server_id, **overrides):
    return make_server(
        server_id,
        description="Current weather conditions",
        category="Weather",
        capabilities=("weather_lookup",),
        tools=(make_tool("get_weather", "Current weather", {"location": {}}),),
        **overrides,
    )


@pytest.mark.asyncio
async def test_deprecated_server_is_never_selected(protocol):
    registry = YamlRegistry(
        [
            _weather_server("dead-weather", verified=True, use_count=10**6, status=ServerStatus.DEPRECATED),
            _weather_server("live-weather", use_count=3),
        ]
    )
    engine = RoutingEngine(registry, cache=MemoryCache(60), protocol=protocol)

    response = await engine.route(RouteRequest(query="weather in Tokyo"))

    assert response["metadata"]["server_id"] == "live-weather"
    assert all(alt["server_id"] != "dead-weather" for alt in response["metadata"]["alternatives"])
    assert protocol.calls == [("live-weather", "get_weather", {"location": "Tokyo"})]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [ServerStatus.DEPRECATED, ServerStatus.INACTIVE])
async def test_only_retired_servers_is_404(protocol, status):
    registry = YamlRegistry([_weather_server("dead-weather", verified=True, status=status)])
    engine = RoutingEngine(registry, cache=MemoryCache(60), protocol=protocol)

    response = await engine.route(RouteRequest(query="weather in Tokyo"))

    assert response["status"] == 404
    assert response["error_type"] == "NoCandidateServer"
    assert protocol.calls == []
