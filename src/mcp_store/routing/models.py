"""
Routing data models.

RouteRequest is the inbound shape; RetrievalContext is what retrieval
strategies see; Candidate and RoutingDecision flow from retrieval through
ranking to the engine.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..registry.models import ServerDescriptor, ToolDescriptor


def _optional_str(data: dict[str, Any], name: str) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{name}' must be a string")
    return value.strip() or None


def _mapping(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be an object")
    return value


@dataclass(frozen=True)
class RouteRequest:
    """
    Inbound routing request.

    At least one of ``query`` or ``intent`` must be given. ``params`` are
    explicit tool arguments that take precedence over extracted entities.
    """

    query: str = ""
    intent: Optional[str] = None
    capabilities: tuple[str, ...] = ()
    category: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    require_verified: bool = False

    def __post_init__(self):
        if not (self.query or "").strip() and not self.intent:
            raise ValueError("Request must include a non-empty 'query' or an 'intent'")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RouteRequest":
        """
        Validate a raw request mapping.

        Raises:
            ValueError: If a field has the wrong type or the request is empty
        """
        if not isinstance(data, dict):
            raise ValueError(f"Request must be an object, got {type(data).__name__}")

        query = data.get("query") or ""
        if not isinstance(query, str):
            raise ValueError("'query' must be a string")

        capabilities = data.get("capabilities") or []
        if isinstance(capabilities, str):
            capabilities = [capabilities]
        if not isinstance(capabilities, (list, tuple)) or not all(
            isinstance(c, str) for c in capabilities
        ):
            raise ValueError("'capabilities' must be a list of strings")

        return cls(
            query=query.strip(),
            intent=_optional_str(data, "intent"),
            capabilities=tuple(c.strip() for c in capabilities if c.strip()),
            category=_optional_str(data, "category"),
            context=_mapping(data, "context"),
            params=_mapping(data, "params"),
            require_verified=bool(data.get("require_verified", data.get("requireVerified", False))),
        )


@dataclass(frozen=True)
class RetrievalContext:
    """Resolved search inputs shared by every retrieval strategy."""

    query: str
    intent: str
    capabilities: tuple[str, ...] = ()
    category: Optional[str] = None
    require_verified: bool = False

    @property
    def lowered_query(self) -> str:
        return self.query.lower().strip()


@dataclass(frozen=True)
class Candidate:
    """A server surfaced by a retrieval strategy, before ranking."""

    server: ServerDescriptor
    source: str
    source_bonus: float
    order: int  # position in the merged list


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: float

    @property
    def server(self) -> ServerDescriptor:
        return self.candidate.server

    @property
    def confidence(self) -> float:
        return min(max(self.score, 0.0) / 100.0, 1.0)


@dataclass(frozen=True)
class Alternative:
    server: ServerDescriptor
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "server": self.server.display_name,
            "server_id": self.server.id,
            "confidence": round(self.confidence, 4),
        }


@dataclass(frozen=True)
class RoutingDecision:
    """Chosen server and tool, with the runners-up kept for transparency."""

    server: ServerDescriptor
    tool: ToolDescriptor
    confidence: float
    score: float
    strategy: str
    alternatives: tuple[Alternative, ...] = ()
    candidates_evaluated: int = 0
