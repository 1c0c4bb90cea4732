"""FastMCP server exposing the router as a single execute_query tool."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from loguru import logger

from .cache import RedisCache, build_cache
from .config import Config
from .registry import YamlRegistry
from .routing import RouteRequest, RoutingEngine

# Constants
SERVER_NAME = "MCPStoreRouter"
HOST = Config.HOST
PORT = Config.PORT
DEFAULT_REGISTRY_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "servers.yaml"

_engine: Optional[RoutingEngine] = None


def build_engine(registry_path: Optional[str] = None) -> RoutingEngine:
    """
    Construct a RoutingEngine from configuration.

    Raises:
        ValueError: If configuration or the registry file is invalid
        FileNotFoundError: If the registry file does not exist
    """
    Config.validate()
    path = registry_path or Config.REGISTRY_YAML_PATH or str(DEFAULT_REGISTRY_PATH)
    registry = YamlRegistry.from_yaml(path)
    return RoutingEngine(registry, cache=build_cache())


def get_engine() -> RoutingEngine:
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def set_engine(engine: Optional[RoutingEngine]) -> None:
    """Install the engine used by execute_query (None resets to lazy construction)."""
    global _engine
    _engine = engine


@asynccontextmanager
async def lifespan(app):
    """
    Server lifecycle manager.

    Startup:
    1. Engine construction (config validation, registry load)
    2. Redis connectivity check when the Redis cache backend is selected

    Shutdown:
    - Close the protocol client and cache
    """
    logger.info(f"Starting {SERVER_NAME} server...")
    engine = get_engine()
    logger.info(f"Registry loaded with {len(await engine.registry.get_all_servers())} server(s)")

    if isinstance(engine.cache, RedisCache):
        healthy, message = await engine.cache.health()
        if healthy:
            logger.info(f"Route cache: redis ({message})")
        else:
            logger.warning(f"{message}. Cache reads will miss until Redis is reachable.")
    else:
        logger.info(f"Route cache: memory (ttl={engine.cache.ttl_seconds}s)")

    logger.info(f"{SERVER_NAME} startup complete, listening on {HOST}:{PORT}")

    yield

    logger.info(f"{SERVER_NAME} shutting down...")
    await engine.close()
    set_engine(None)


mcp = FastMCP(name=SERVER_NAME, lifespan=lifespan)


@mcp.tool()
async def execute_query(
    query: str = "",
    intent: Optional[str] = None,
    capabilities: Optional[list[str]] = None,
    category: Optional[str] = None,
    context: Optional[dict[str, Any]] = None,
    params: Optional[dict[str, Any]] = None,
    require_verified: bool = False,
) -> dict[str, Any]:
    """
    Route a request to the best matching tool server and run it.

    Args:
        query: Natural-language request, e.g. "weather in Tokyo"
        intent: Optional explicit intent (skips classification)
        capabilities: Optional required capabilities
        category: Optional server category
        context: Optional caller context
        params: Optional explicit tool arguments
        require_verified: Only consider verified servers in expanded search

    Returns:
        {"success": true, "result", "metadata"} or
        {"success": false, "status", "error", "error_type", ...}
    """
    try:
        request = RouteRequest.from_dict(
            {
                "query": query,
                "intent": intent,
                "capabilities": capabilities,
                "category": category,
                "context": context,
                "params": params,
                "require_verified": require_verified,
            }
        )
    except ValueError as e:
        raise ToolError(f"Invalid request: {e}")

    return await get_engine().route(request)


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main():
    """
    Main entry point for the router server.

    Configures loguru sinks and runs the FastMCP server over SSE.
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>",
        level=Config.LOG_LEVEL,
    )

    logger.add(
        Config.LOG_FILE,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        level="DEBUG",
    )

    logger.info(f"Starting {SERVER_NAME}...")

    try:
        mcp.run(transport="sse", host=HOST, port=PORT)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
