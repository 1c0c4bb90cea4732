"""
Incremental decoder for tool server responses.

A response body is either a single JSON document or an event stream whose
``data:`` lines carry the JSON-RPC envelope. Some servers keep the event
stream open after answering, so the decoder reports the envelope as soon as
it is complete and the caller stops reading.

States:

    AWAITING_HEADERS -> READING -> FRAMING_DETECTED -> ENVELOPE_PARSED
                                                    -> TIMEOUT
                                                    -> MALFORMED

TIMEOUT and MALFORMED are reached only through ``finish`` when neither the
stream nor the last-resort whole-body parse produced an envelope.
"""

import codecs
import json
from enum import Enum
from typing import Any, Optional, Union

from .envelope import is_response


class ReadState(str, Enum):
    AWAITING_HEADERS = "awaiting_headers"
    READING = "reading"
    FRAMING_DETECTED = "framing_detected"
    ENVELOPE_PARSED = "envelope_parsed"
    TIMEOUT = "timeout"
    MALFORMED = "malformed"


class Framing(str, Enum):
    JSON = "json"
    EVENT_STREAM = "event_stream"


TERMINAL_STATES = frozenset({ReadState.ENVELOPE_PARSED, ReadState.TIMEOUT, ReadState.MALFORMED})

_SSE_FIELDS = ("data:", "event:", "id:", "retry:", ":")


class StreamDecoder:
    """
    Assemble one JSON-RPC response envelope from body chunks.

    Usage:
        decoder = StreamDecoder(expected_id=7)
        decoder.start(response.headers.get("content-type", ""))
        for chunk in chunks:
            if decoder.feed(chunk) is not None:
                break
        envelope = decoder.envelope or decoder.finish(timed_out=False)
    """

    def __init__(self, expected_id: Optional[Any] = None):
        self.expected_id = expected_id
        self.state = ReadState.AWAITING_HEADERS
        self.framing: Optional[Framing] = None
        self.envelope: Optional[dict[str, Any]] = None
        self._content_type = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._body: list[str] = []
        self._line_buffer = ""
        self._data_lines: list[str] = []

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def body_text(self) -> str:
        return "".join(self._body)

    def start(self, content_type: str = "") -> None:
        """Record response headers and begin reading the body."""
        if self.state is not ReadState.AWAITING_HEADERS:
            raise RuntimeError(f"Decoder already started (state={self.state.value})")
        self._content_type = (content_type or "").lower()
        self.state = ReadState.READING

    def feed(self, chunk: Union[bytes, str]) -> Optional[dict[str, Any]]:
        """
        Consume one body chunk.

        Returns:
            The response envelope once it is complete, otherwise None
        """
        if self.done:
            return self.envelope
        if self.state is ReadState.AWAITING_HEADERS:
            self.start()

        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        if not text:
            return None
        self._body.append(text)

        if self.framing is None and not self._detect_framing():
            return None

        if self.framing is Framing.EVENT_STREAM:
            self._scan_lines(text)
        else:
            self._try_document(self.body_text)
        return self.envelope

    def finish(self, timed_out: bool = False) -> Optional[dict[str, Any]]:
        """
        Stop reading and settle the final state.

        Any unterminated event is flushed, then the whole body is parsed as a
        JSON document as a last resort.

        Args:
            timed_out: True if reading stopped on a chunk or total deadline

        Returns:
            The envelope, or None with state TIMEOUT or MALFORMED
        """
        if self.done:
            return self.envelope

        tail = self._utf8.decode(b"", final=True)
        if tail:
            self._body.append(tail)
            self._line_buffer += tail

        if self.framing is Framing.EVENT_STREAM and self._line_buffer:
            self._handle_line(self._line_buffer)
            self._line_buffer = ""
        if self.envelope is None and self._data_lines:
            self._try_data()
        if self.envelope is None:
            self._try_document(self.body_text)

        if self.envelope is None:
            self.state = ReadState.TIMEOUT if timed_out else ReadState.MALFORMED
        return self.envelope

    def _detect_framing(self) -> bool:
        head = self.body_text.lstrip()
        if not head:
            return False
        if "text/event-stream" in self._content_type or head.startswith(_SSE_FIELDS):
            self.framing = Framing.EVENT_STREAM
            self._line_buffer = ""
            self._scan_lines_from_start()
        else:
            self.framing = Framing.JSON
        self.state = ReadState.FRAMING_DETECTED
        return True

    def _scan_lines_from_start(self) -> None:
        # Earlier chunks were buffered before framing was known; replay all but
        # the current chunk, which feed() scans next.
        for earlier in self._body[:-1]:
            self._scan_lines(earlier)

    def _scan_lines(self, text: str) -> None:
        self._line_buffer += text
        while self.envelope is None:
            newline = self._line_buffer.find("\n")
            if newline < 0:
                return
            line = self._line_buffer[:newline].rstrip("\r")
            self._line_buffer = self._line_buffer[newline + 1:]
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        if not line:
            # Blank line ends an event.
            self._data_lines = []
            return
        if line.startswith("data:"):
            value = line[5:]
            self._data_lines.append(value[1:] if value.startswith(" ") else value)
            self._try_data()

    def _try_data(self) -> None:
        try:
            message = json.loads("\n".join(self._data_lines))
        except ValueError:
            # Incomplete or non-JSON payload; wait for more data lines.
            return
        self._data_lines = []
        self._accept(message)

    def _try_document(self, text: str) -> None:
        stripped = text.strip()
        if not stripped or stripped[-1] not in "}]":
            return
        try:
            message = json.loads(stripped)
        except ValueError:
            return
        if isinstance(message, list):
            for item in message:
                if self._accept(item):
                    return
        else:
            self._accept(message)

    def _accept(self, message: Any) -> bool:
        if not is_response(message, self.expected_id):
            return False
        self.envelope = message
        self.state = ReadState.ENVELOPE_PARSED
        return True
