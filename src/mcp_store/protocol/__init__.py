"""MCP protocol client: envelopes, session handshake and stream decoding."""
from .client import ProtocolClient
from .credentials import CredentialResolver, EnvCredentialResolver, NoCredentials
from .decoder import ReadState, StreamDecoder
from .envelope import build_call_request, build_initialize_request, unwrap_result
from .session import SessionStore

__all__ = [
    "CredentialResolver",
    "EnvCredentialResolver",
    "NoCredentials",
    "ProtocolClient",
    "ReadState",
    "SessionStore",
    "StreamDecoder",
    "build_call_request",
    "build_initialize_request",
    "unwrap_result",
]
