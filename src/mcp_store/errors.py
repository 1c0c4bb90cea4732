"""
Routing and invocation error taxonomy.

Every error carries the HTTP-style ``status`` and a stable ``error_type``
label used when the engine converts it into a failure response. Errors are
scoped to a single request; none of them is process-fatal.

Hierarchy:
- RoutingError
  - RetrievalFailure      every candidate retrieval strategy failed
  - NoCandidateServer     retrieval succeeded but matched nothing
  - NoUsableTool          no ranked candidate exposed a usable tool
  - InvocationError       downstream tool call failed
    - TransportFailure    connection/timeout before any response byte
    - ProtocolFailure     non-success HTTP status
    - EnvelopeError       server answered with a JSON-RPC error object
    - StreamTimeout       deadline hit with no parsable envelope
    - MalformedStream     body ended with no parsable envelope
"""

from typing import Any, Optional


class RoutingError(Exception):
    """Base class for request-scoped routing failures."""

    status: int = 500
    error_type: str = "RoutingError"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Convert to a failure response body."""
        body = {
            "success": False,
            "status": self.status,
            "error": self.message,
            "error_type": self.error_type,
        }
        body.update(self.details)
        return body


class RetrievalFailure(RoutingError):
    """Raised when all concurrent retrieval strategies failed."""

    status = 503
    error_type = "RetrievalFailure"


class NoCandidateServer(RoutingError):
    """Raised when retrieval succeeded but produced zero servers."""

    status = 404
    error_type = "NoCandidateServer"

    def __init__(self, message: str = "No suitable server found", **details: Any):
        super().__init__(message, **details)


class NoUsableTool(RoutingError):
    """Raised when the cascade window is exhausted without a usable tool."""

    status = 404
    error_type = "NoUsableTool"

    def __init__(self, message: str = "No matching tool found", **details: Any):
        super().__init__(message, **details)


class InvocationError(RoutingError):
    """Base class for downstream tool invocation failures."""

    status = 502
    error_type = "InvocationError"


class TransportFailure(InvocationError):
    """Connection error or timeout before any response was received."""

    error_type = "TransportFailure"


class ProtocolFailure(InvocationError):
    """Downstream server answered with a non-success HTTP status."""

    error_type = "ProtocolFailure"

    def __init__(self, message: str, http_status: Optional[int] = None, **details: Any):
        super().__init__(message, http_status=http_status, **details)
        self.http_status = http_status


class EnvelopeError(InvocationError):
    """Downstream server answered with a structured JSON-RPC error."""

    error_type = "EnvelopeError"

    def __init__(self, message: str, code: Optional[int] = None, **details: Any):
        super().__init__(message, code=code, **details)
        self.code = code


class StreamTimeout(InvocationError):
    """No parsable envelope was located before the stream deadline."""

    error_type = "StreamTimeout"


class MalformedStream(InvocationError):
    """Response body contained no parsable envelope."""

    error_type = "MalformedStream"
