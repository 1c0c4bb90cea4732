"""Pytest fixtures for the MCP Store router test suite."""

import pytest

from mcp_store.cache import MemoryCache
from mcp_store.registry import YamlRegistry
from mcp_store.routing import RoutingEngine
from tests.test_utils import FakeProtocol, make_server, make_tool


# ============================================================================
# CATALOG FIXTURES
# ============================================================================


@pytest.fixture
def weather_server():
    return make_server(
        "weather-pro",
        display_name="Weather Pro",
        description="Current weather conditions and forecasts",
        category="Weather",
        capabilities=("weather_lookup", "location_search"),
        tools=(
            make_tool(
                "get_current_weather",
                "Get current weather for a location",
                {"location": {"type": "string"}},
            ),
            make_tool(
                "get_forecast",
                "Multi-day forecast",
                {"location": {"type": "string"}, "days": {"type": "integer"}},
            ),
        ),
        trust_score=90,
        verified=True,
        use_count=1500,
        tags=("weather",),
    )


@pytest.fixture
def crypto_server():
    return make_server(
        "coin-ticker",
        display_name="Coin Ticker",
        description="Real-time cryptocurrency prices",
        category="Finance",
        capabilities=("crypto_price", "market_data"),
        tools=(
            make_tool(
                "get_crypto_price",
                "Get the current price of a cryptocurrency",
                {"symbol": {"type": "string"}},
            ),
        ),
        trust_score=85,
        verified=True,
        use_count=900,
        tags=("crypto", "bitcoin"),
    )


@pytest.fixture
def search_server():
    return make_server(
        "web-search",
        display_name="Web Search",
        description="Search the web",
        category="Search",
        capabilities=("web_search", "content_retrieval"),
        tools=(make_tool("web_search", "Search the web for a query", {"query": {"type": "string"}}),),
        trust_score=80,
        verified=True,
        use_count=3000,
        tags=("search",),
    )


@pytest.fixture
def food_server():
    return make_server(
        "food-finder",
        display_name="Food Finder",
        description="Restaurants and food delivery",
        category="Commerce",
        capabilities=("food_ordering", "delivery_search"),
        tools=(make_tool("search_restaurants", "Search restaurants offering delivery"),),
        use_count=120,
        tags=("food", "delivery"),
    )


@pytest.fixture
def registry(weather_server, crypto_server, search_server, food_server):
    return YamlRegistry([weather_server, crypto_server, search_server, food_server])


# ============================================================================
# ENGINE FIXTURES
# ============================================================================


@pytest.fixture
def protocol():
    return FakeProtocol()


@pytest.fixture
def engine(registry, protocol):
    """RoutingEngine with an in-memory cache and a recording protocol client."""
    return RoutingEngine(registry, cache=MemoryCache(ttl_seconds=300), protocol=protocol)
