"""Registry client interface and a static YAML-backed implementation."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

import yaml
from loguru import logger

from .models import DiscoveryFilter, ServerDescriptor


class RegistryClient(ABC):
    """
    Read-only view of the tool server catalog consumed by the router.

    Implementations may be slow or fail independently per call; the router
    treats every method as a suspension point and never assumes success.
    """

    @abstractmethod
    async def get(self, server_id: str) -> Optional[ServerDescriptor]:
        """Return one server by id, or None if unknown."""

    @abstractmethod
    async def discover(self, query: DiscoveryFilter) -> list[ServerDescriptor]:
        """Return servers matching every set field of the filter."""

    @abstractmethod
    async def get_all_servers(self) -> list[ServerDescriptor]:
        """Return every registered server."""


class YamlRegistry(RegistryClient):
    """
    Static server catalog loaded from YAML.

    Features:
    - Boundary validation of every record (ServerDescriptor.from_dict)
    - Duplicate id rejection within one snapshot
    - discover() ordered by trust score, highest first
    """

    def __init__(self, servers: Iterable[ServerDescriptor] = ()):
        """Initialize the registry from already-validated descriptors."""
        self._servers: dict[str, ServerDescriptor] = {}
        for server in servers:
            self.add(server)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "YamlRegistry":
        """
        Load registry from YAML file.

        Args:
            yaml_path: Path to a YAML file with a top-level ``servers`` list

        Returns:
            Initialized YamlRegistry instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is malformed
            ValueError: If the structure or a server record is invalid
        """
        yaml_file = Path(yaml_path)
        if not yaml_file.exists():
            raise FileNotFoundError(f"Registry YAML not found: {yaml_path}")

        with open(yaml_file) as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Invalid YAML structure: expected dict, got {type(data).__name__}")

        servers = data.get("servers", [])
        if not isinstance(servers, list):
            raise ValueError("'servers' must be a list")

        registry = cls(ServerDescriptor.from_dict(entry) for entry in servers)
        logger.info(f"Loaded {len(registry)} server(s) from {yaml_file}")
        return registry

    def __len__(self) -> int:
        return len(self._servers)

    def add(self, server: ServerDescriptor) -> None:
        """
        Add a server to the snapshot.

        Raises:
            ValueError: If a server with the same id is already registered
        """
        if server.id in self._servers:
            raise ValueError(f"Duplicate server id in registry: '{server.id}'")
        self._servers[server.id] = server

    async def get(self, server_id: str) -> Optional[ServerDescriptor]:
        return self._servers.get(server_id)

    async def discover(self, query: DiscoveryFilter) -> list[ServerDescriptor]:
        matches = [server for server in self._servers.values() if query.matches(server)]
        return sorted(matches, key=lambda s: s.trust_score, reverse=True)

    async def get_all_servers(self) -> list[ServerDescriptor]:
        return list(self._servers.values())
