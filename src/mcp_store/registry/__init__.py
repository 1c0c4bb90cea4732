"""Tool server registry package."""
from .models import DiscoveryFilter, ServerDescriptor, ServerStatus, ToolDescriptor
from .registry import RegistryClient, YamlRegistry

__all__ = [
    "DiscoveryFilter",
    "RegistryClient",
    "ServerDescriptor",
    "ServerStatus",
    "ToolDescriptor",
    "YamlRegistry",
]
