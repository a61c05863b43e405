"""LSP message framing with Content-Length headers.

This module implements the LSP base protocol framing:
- Header parsing (Content-Length required, Content-Type optional)
- Incremental parsing of an arbitrarily chunked byte stream
- Message encoding with Content-Length framing

LSP Header Format:
    Content-Length: <length>\r\n
    [Content-Type: <type>]\r\n
    \r\n
    <json-rpc-message>

The Content-Length header is required and specifies the byte count
of the JSON-RPC message body. Headers are separated from the body
by a blank line (double CRLF).
"""

from __future__ import annotations

import json
from typing import Any

from lspc.errors import FramingError

# Header constants
CONTENT_LENGTH = "content-length"
HEADER_ENCODING = "ascii"
CONTENT_ENCODING = "utf-8"
HEADER_SEPARATOR = b"\r\n\r\n"


def parse_header(header_bytes: bytes) -> dict[str, str]:
    """Parse LSP headers from raw bytes.

    Args:
        header_bytes: Raw header bytes (without trailing CRLF CRLF separator).
            Should contain lines like "Content-Length: 123\r\nContent-Type: ..."

    Returns:
        Dictionary mapping lowercased header names to values.

    Raises:
        FramingError: If headers are malformed or Content-Length is missing/invalid.

    Example:
        >>> parse_header(b"Content-Length: 42\\r\\nContent-Type: application/json")
        {'content-length': '42', 'content-type': 'application/json'}
    """
    headers: dict[str, str] = {}

    if not header_bytes:
        raise FramingError("Empty header block")

    try:
        header_text = header_bytes.decode(HEADER_ENCODING)
    except UnicodeDecodeError as e:
        raise FramingError(f"Header contains non-ASCII characters: {e}") from e

    for line in header_text.split("\r\n"):
        if not line:
            continue

        # Each header line is "Name: Value"
        colon_pos = line.find(":")
        if colon_pos == -1:
            raise FramingError(f"Malformed header line (no colon): {line!r}")

        name = line[:colon_pos].strip()
        value = line[colon_pos + 1 :].strip()

        if not name:
            raise FramingError(f"Empty header name in line: {line!r}")

        headers[name.lower()] = value

    if CONTENT_LENGTH not in headers:
        raise FramingError("Missing required Content-Length header")

    try:
        length = int(headers[CONTENT_LENGTH])
    except ValueError as e:
        raise FramingError(f"Invalid Content-Length value: {headers[CONTENT_LENGTH]!r}") from e

    if length < 0:
        raise FramingError(f"Negative Content-Length: {length}")

    return headers


class MessageFramer:
    """Incremental parser turning a chunked byte stream into message bodies.

    Chunks received from a language server need not end on a message
    boundary: one chunk may hold the tail of one message, several complete
    messages and the head of the next one.

    Example:
        >>> framer = MessageFramer()
        >>> framer.feed(b"Content-Length: 3\\r\\n")
        >>> framer.feed(b"\\r\\nfoo")
        >>> framer.drain()
        [b'foo']
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._expected: int | None = None
        self._messages: list[bytes] = []

    @property
    def buffered(self) -> int:
        """Number of bytes held back waiting for more data."""
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        """Append data and extract every message it completes.

        Raises:
            FramingError: If a header lacks a valid Content-Length. The
                buffered data is discarded; the stream is not resynchronized.
        """
        self._buffer += data

        while True:
            if self._expected is None:
                header_end = self._buffer.find(HEADER_SEPARATOR)
                if header_end == -1:
                    # header is not complete yet -> wait for more data
                    return

                try:
                    headers = parse_header(bytes(self._buffer[:header_end]))
                except FramingError:
                    self._buffer.clear()
                    raise

                self._expected = int(headers[CONTENT_LENGTH])
                del self._buffer[: header_end + len(HEADER_SEPARATOR)]

            if len(self._buffer) < self._expected:
                return

            self._messages.append(bytes(self._buffer[: self._expected]))
            del self._buffer[: self._expected]
            self._expected = None

            if not self._buffer:
                return

    def drain(self) -> list[bytes]:
        """Return all complete message bodies and clear the queue."""
        messages = self._messages
        self._messages = []
        return messages

    def reset(self) -> None:
        """Drop all buffered state."""
        self._buffer.clear()
        self._expected = None
        self._messages = []


def encode_message(msg: dict[str, Any]) -> bytes:
    """Serialize a JSON-RPC message with Content-Length framing.

    Raises:
        FramingError: If the message cannot be serialized to JSON.
    """
    try:
        body_bytes = json.dumps(msg, separators=(",", ":")).encode(CONTENT_ENCODING)
    except (TypeError, ValueError) as e:
        raise FramingError(f"Message cannot be serialized to JSON: {e}") from e

    header = f"Content-Length: {len(body_bytes)}\r\n\r\n"
    return header.encode(HEADER_ENCODING) + body_bytes


def decode_body(body: bytes) -> dict[str, Any]:
    """Decode one message body into a JSON-RPC object.

    Raises:
        FramingError: If the body is not UTF-8 JSON describing an object.
    """
    try:
        content = body.decode(CONTENT_ENCODING)
    except UnicodeDecodeError as e:
        raise FramingError(f"Invalid UTF-8 in message body: {e}") from e

    try:
        message = json.loads(content)
    except json.JSONDecodeError as e:
        raise FramingError(f"Invalid JSON in message body: {e}") from e

    if not isinstance(message, dict):
        raise FramingError(f"JSON-RPC message must be an object, got {type(message).__name__}")

    return message
