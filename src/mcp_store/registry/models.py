"""
Tool server registry data models.

Defines ServerDescriptor, ToolDescriptor and DiscoveryFilter.

Descriptors are immutable per fetch: the router reads them from a registry
client and never mutates them. Raw registry rows are validated once at the
boundary by ``from_dict`` so the rest of the pipeline can trust the shape.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ServerStatus(str, Enum):
    """Lifecycle status of a registered tool server."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DEPRECATED = "deprecated"


def _string_list(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"'{field_name}' must be a list of strings")
    return tuple(str(item) for item in value if item is not None)


@dataclass(frozen=True)
class ToolDescriptor:
    """A named, schema-described callable exposed by a tool server."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolDescriptor":
        """
        Build a ToolDescriptor from a raw registry row.

        Accepts both ``inputSchema`` (wire name) and ``input_schema``.

        Raises:
            ValueError: If the row is not a mapping or has no name
        """
        if not isinstance(data, dict):
            raise ValueError(f"Tool entry must be a mapping, got {type(data).__name__}")
        name = data.get("name")
        if not name or not str(name).strip():
            raise ValueError("Tool entry must have a non-empty 'name'")
        schema = data.get("inputSchema", data.get("input_schema")) or {}
        if not isinstance(schema, dict):
            raise ValueError(f"Tool '{name}' inputSchema must be an object")
        return cls(
            name=str(name).strip(),
            description=str(data.get("description") or ""),
            input_schema=schema,
        )

    def schema_properties(self) -> dict[str, Any]:
        """Return the declared input properties, or an empty dict."""
        properties = self.input_schema.get("properties")
        return properties if isinstance(properties, dict) else {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class ServerDescriptor:
    """
    Static metadata for a remote tool server.

    Constraints:
    - id must be unique within one registry snapshot
    - trust_score must be in [0, 100]
    - use_count must be >= 0
    - endpoint must be an http(s) URI
    """

    id: str
    qualified_name: str
    display_name: str
    endpoint: str
    description: str = ""
    category: str = "Uncategorized"
    capabilities: tuple[str, ...] = ()
    tools: tuple[ToolDescriptor, ...] = ()
    trust_score: int = 50
    verified: bool = False
    use_count: int = 0
    tags: tuple[str, ...] = ()
    status: ServerStatus = ServerStatus.ACTIVE

    def __post_init__(self):
        if not self.id or not self.id.strip():
            raise ValueError("Server id must not be empty")
        if not (0 <= self.trust_score <= 100):
            raise ValueError(
                f"trust_score must be in [0, 100], got {self.trust_score} for '{self.id}'"
            )
        if self.use_count < 0:
            raise ValueError(f"use_count must be >= 0, got {self.use_count} for '{self.id}'")
        if not self.endpoint.startswith(("http://", "https://")):
            raise ValueError(f"endpoint must be an http(s) URI, got '{self.endpoint}'")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServerDescriptor":
        """
        Build a ServerDescriptor from a raw registry row.

        Accepts camelCase wire names (``qualifiedName``, ``useCount`` ...) as
        well as snake_case. ``tools`` may arrive as a JSON-encoded string.

        Args:
            data: Raw mapping from the registry

        Returns:
            Validated ServerDescriptor

        Raises:
            ValueError: If a required field is missing or a value is invalid
        """
        if not isinstance(data, dict):
            raise ValueError(f"Server entry must be a mapping, got {type(data).__name__}")

        def pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return default

        server_id = pick("id", "qualified_name", "qualifiedName")
        if not server_id:
            raise ValueError("Server entry must have an 'id'")
        server_id = str(server_id)

        endpoint = pick("endpoint", "deployment_url", "deploymentUrl")
        if not endpoint:
            raise ValueError(f"Server '{server_id}' must have an 'endpoint'")

        raw_tools = pick("tools", default=[])
        if isinstance(raw_tools, str):
            try:
                raw_tools = json.loads(raw_tools)
            except json.JSONDecodeError as e:
                raise ValueError(f"Server '{server_id}' tools is not valid JSON: {e}")
        if not isinstance(raw_tools, list):
            raise ValueError(f"Server '{server_id}' tools must be a list")

        status_value = str(pick("status", default=ServerStatus.ACTIVE.value)).lower()
        try:
            status = ServerStatus(status_value)
        except ValueError:
            raise ValueError(f"Server '{server_id}' has unknown status '{status_value}'")

        qualified_name = str(pick("qualified_name", "qualifiedName", default=server_id))
        return cls(
            id=server_id,
            qualified_name=qualified_name,
            display_name=str(pick("display_name", "displayName", "name", default=qualified_name)),
            endpoint=str(endpoint),
            description=str(pick("description", default="")),
            category=str(pick("category", default="Uncategorized")),
            capabilities=_string_list(pick("capabilities"), "capabilities"),
            tools=tuple(ToolDescriptor.from_dict(tool) for tool in raw_tools),
            trust_score=int(pick("trust_score", "trustScore", default=50)),
            verified=bool(pick("verified", "security_scan_passed", default=False)),
            use_count=int(pick("use_count", "useCount", default=0)),
            tags=_string_list(pick("tags"), "tags"),
            status=status,
        )

    @property
    def is_active(self) -> bool:
        return self.status is ServerStatus.ACTIVE

    def tools_text(self) -> str:
        """Lowercased text of every tool name and description, for substring matching."""
        return " ".join(
            f"{tool.name} {tool.description}" for tool in self.tools
        ).lower()

    def to_summary(self) -> dict[str, Any]:
        """Compact representation used in response metadata."""
        return {
            "id": self.id,
            "name": self.display_name,
            "category": self.category,
            "verified": self.verified,
            "use_count": self.use_count,
        }


@dataclass(frozen=True)
class DiscoveryFilter:
    """Optional filters accepted by ``RegistryClient.discover``."""

    capability: Optional[str] = None
    category: Optional[str] = None
    verified: Optional[bool] = None

    def matches(self, server: ServerDescriptor) -> bool:
        if self.capability and self.capability not in server.capabilities:
            return False
        if self.category and server.category.lower() != self.category.lower():
            return False
        if self.verified is not None and server.verified != self.verified:
            return False
        return True
