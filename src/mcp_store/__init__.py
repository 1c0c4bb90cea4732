"""MCP Store router - routes natural-language requests to remote tool servers."""

__version__ = "0.1.0"

from .errors import RoutingError
from .routing.engine import RoutingEngine
from .routing.models import RouteRequest

__all__ = ["RouteRequest", "RoutingEngine", "RoutingError", "__version__"]
