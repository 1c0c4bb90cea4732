"""Credential resolution for outbound tool calls."""

import os
import re
from abc import ABC, abstractmethod
from typing import Mapping, Optional

from ..config import Config
from ..registry.models import ServerDescriptor


class CredentialResolver(ABC):
    """Supplies authentication headers for a tool server."""

    @abstractmethod
    async def headers_for(self, server: ServerDescriptor) -> dict[str, str]:
        """Return headers to add to requests for this server (may be empty)."""


class NoCredentials(CredentialResolver):
    async def headers_for(self, server: ServerDescriptor) -> dict[str, str]:
        return {}


class EnvCredentialResolver(CredentialResolver):
    """
    Reads bearer tokens from environment variables.

    The variable name is the prefix followed by the server id uppercased,
    with every character outside [A-Z0-9] replaced by "_":

        server id "@smithery/weather-pro" -> MCP_STORE_TOKEN__SMITHERY_WEATHER_PRO
    """

    def __init__(self, prefix: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        self.prefix = prefix if prefix is not None else Config.CREDENTIAL_ENV_PREFIX
        self._environ = environ if environ is not None else os.environ

    def variable_name(self, server_id: str) -> str:
        return self.prefix + re.sub(r"[^A-Z0-9]", "_", server_id.upper())

    async def headers_for(self, server: ServerDescriptor) -> dict[str, str]:
        token = self._environ.get(self.variable_name(server.id))
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}
