"""JSON-RPC 2.0 envelopes for the MCP tools/call and initialize methods."""

from typing import Any, Optional

from ..errors import EnvelopeError

JSONRPC_VERSION = "2.0"


def build_request(method: str, params: dict[str, Any], request_id: int) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
        "params": params,
    }


def build_call_request(tool_name: str, arguments: dict[str, Any], request_id: int) -> dict[str, Any]:
    """Envelope for invoking one tool on a tool server."""
    return build_request(
        "tools/call",
        {"name": tool_name, "arguments": arguments},
        request_id,
    )


def build_initialize_request(
    protocol_version: str,
    client_name: str,
    client_version: str,
    request_id: int,
) -> dict[str, Any]:
    """Envelope for the session handshake."""
    return build_request(
        "initialize",
        {
            "protocolVersion": protocol_version,
            "capabilities": {},
            "clientInfo": {"name": client_name, "version": client_version},
        },
        request_id,
    )


def is_response(message: Any, expected_id: Optional[Any] = None) -> bool:
    """
    True if message is a JSON-RPC response (has ``result`` or ``error``).

    Notifications and requests from the server are not responses. When
    expected_id is given, responses for other ids are ignored; a null id is
    still accepted since servers use it for errors they cannot attribute.
    """
    if not isinstance(message, dict):
        return False
    if "result" not in message and "error" not in message:
        return False
    if expected_id is not None and message.get("id") not in (expected_id, None):
        return False
    return True


def unwrap_result(envelope: dict[str, Any]) -> Any:
    """
    Return the ``result`` of a response envelope.

    Raises:
        EnvelopeError: If the envelope carries an ``error`` object
    """
    error = envelope.get("error")
    if error is not None:
        if isinstance(error, dict):
            raise EnvelopeError(
                f"Tool server error: {error.get('message', 'unknown error')}",
                code=error.get("code"),
                data=error.get("data"),
            )
        raise EnvelopeError(f"Tool server error: {error}")
    return envelope.get("result")
