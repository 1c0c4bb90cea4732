"""HTTP client for invoking tools on remote MCP servers."""

import asyncio
import itertools
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from loguru import logger

from ..config import Config
from ..errors import MalformedStream, ProtocolFailure, StreamTimeout, TransportFailure
from ..registry.models import ServerDescriptor
from .credentials import CredentialResolver, NoCredentials
from .decoder import ReadState, StreamDecoder
from .envelope import build_call_request, build_initialize_request, unwrap_result
from .session import SessionStore

ACCEPT = "application/json, text/event-stream"
SESSION_REQUIRED_TAG = "session-required"


class ProtocolClient:
    """
    Sends JSON-RPC requests to tool servers over HTTP POST.

    Features:
    - Session handshake before every call for servers that require it
      (configured host list or a ``session-required`` tag)
    - Session token captured from response headers and echoed on later calls
    - JSON and event-stream responses, stopping as soon as the envelope is read
    - Per-chunk and total read deadlines, no internal retries

    Every failure surfaces as an InvocationError subclass.
    """

    def __init__(
        self,
        credentials: Optional[CredentialResolver] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        handshake_hosts: Optional[list[str]] = None,
        session_header: Optional[str] = None,
        call_timeout: Optional[float] = None,
        handshake_timeout: Optional[float] = None,
        chunk_timeout: Optional[float] = None,
        total_timeout: Optional[float] = None,
    ):
        self.credentials = credentials or NoCredentials()
        self.handshake_hosts = [
            h.lower() for h in (handshake_hosts if handshake_hosts is not None else Config.HANDSHAKE_HOSTS)
        ]
        self.session_header = session_header or Config.SESSION_HEADER
        self.call_timeout = call_timeout or Config.CALL_TIMEOUT
        self.handshake_timeout = handshake_timeout or Config.HANDSHAKE_TIMEOUT
        self.chunk_timeout = chunk_timeout or Config.STREAM_CHUNK_TIMEOUT
        self.total_timeout = total_timeout or Config.STREAM_TOTAL_TIMEOUT
        self.sessions = SessionStore()
        self._http = http_client
        self._owns_http = http_client is None
        self._request_ids = itertools.count(1)

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            timeout = httpx.Timeout(self.call_timeout, connect=Config.CONNECT_TIMEOUT)
            self._http = httpx.AsyncClient(timeout=timeout)
        return self._http

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    def requires_session(self, server: ServerDescriptor) -> bool:
        if SESSION_REQUIRED_TAG in server.tags:
            return True
        host = (urlparse(server.endpoint).hostname or "").lower()
        return any(host == h or host.endswith("." + h) for h in self.handshake_hosts)

    async def call_tool(
        self,
        server: ServerDescriptor,
        tool_name: str,
        arguments: dict[str, Any],
    ) -> Any:
        """
        Invoke one tool and return the envelope's ``result``.

        Args:
            server: Target tool server
            tool_name: Name of a tool exposed by the server
            arguments: Tool arguments

        Returns:
            The ``result`` member of the response envelope

        Raises:
            TransportFailure: Connection error or timeout before a response
            ProtocolFailure: Non-success HTTP status
            EnvelopeError: Response carried a JSON-RPC error
            StreamTimeout: Deadline hit before an envelope was complete
            MalformedStream: Body ended without a parsable envelope
        """
        if self.requires_session(server):
            # Sessions on these hosts expire quickly; always start a fresh one.
            await self.initialize(server)

        request = build_call_request(tool_name, arguments, next(self._request_ids))
        logger.info(f"Calling tool '{tool_name}' on {server.id} ({server.endpoint})")
        envelope = await self._post(server, request, self.call_timeout)
        return unwrap_result(envelope)

    async def initialize(self, server: ServerDescriptor) -> Any:
        """
        Run the session handshake with a tool server.

        Raises:
            InvocationError subclass on failure, as for call_tool
        """
        # A new handshake never presents, or falls back to, the previous token.
        self.sessions.discard(server.id)
        request = build_initialize_request(
            Config.PROTOCOL_VERSION,
            Config.CLIENT_NAME,
            Config.CLIENT_VERSION,
            next(self._request_ids),
        )
        envelope = await self._post(server, request, self.handshake_timeout)
        result = unwrap_result(envelope)
        logger.debug(
            f"Initialized session with {server.id} "
            f"(session={'yes' if server.id in self.sessions else 'no'})"
        )
        return result

    async def _headers(self, server: ServerDescriptor) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": ACCEPT}
        headers.update(await self.credentials.headers_for(server))
        token = self.sessions.get(server.id)
        if token:
            headers[self.session_header] = token
        return headers

    def _capture_session(self, server: ServerDescriptor, response: httpx.Response) -> None:
        token = response.headers.get(self.session_header)
        if token:
            self.sessions.set(server.id, token)
            logger.debug(f"Captured session token for {server.id}")

    async def _post(self, server: ServerDescriptor, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
        method = payload["method"]
        headers = await self._headers(server)
        http = self._get_http()
        try:
            async with http.stream(
                "POST", server.endpoint, json=payload, headers=headers, timeout=timeout
            ) as response:
                self._capture_session(server, response)
                if response.is_error:
                    raise ProtocolFailure(
                        f"{method} to {server.id} failed: HTTP {response.status_code}",
                        http_status=response.status_code,
                        server_id=server.id,
                    )
                return await self._read_envelope(server, response, payload["id"])
        except httpx.TimeoutException as e:
            raise TransportFailure(f"{method} to {server.id} timed out: {e}", server_id=server.id)
        except httpx.TransportError as e:
            raise TransportFailure(f"{method} to {server.id} failed: {e}", server_id=server.id)

    async def _read_envelope(
        self,
        server: ServerDescriptor,
        response: httpx.Response,
        request_id: int,
    ) -> dict[str, Any]:
        decoder = StreamDecoder(expected_id=request_id)
        decoder.start(response.headers.get("content-type", ""))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.total_timeout
        chunks = response.aiter_bytes()
        timed_out = False

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                timed_out = True
                break
            try:
                chunk = await asyncio.wait_for(
                    chunks.__anext__(), timeout=min(self.chunk_timeout, remaining)
                )
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError:
                timed_out = True
                break
            envelope = decoder.feed(chunk)
            if envelope is not None:
                return envelope

        if timed_out:
            logger.warning(
                f"Stream read deadline hit for {server.id}, "
                f"parsing partial body ({len(decoder.body_text)} chars)"
            )
        envelope = decoder.finish(timed_out=timed_out)
        if envelope is not None:
            return envelope

        preview = decoder.body_text[:200]
        if decoder.state is ReadState.TIMEOUT:
            raise StreamTimeout(
                f"No complete response from {server.id} before the read deadline",
                server_id=server.id,
                body_preview=preview,
            )
        raise MalformedStream(
            f"No valid JSON-RPC envelope in response from {server.id}",
            server_id=server.id,
            body_preview=preview,
        )
