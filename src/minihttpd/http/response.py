"""
=============================================================================
HTTP RESPONSE SERIALIZER
=============================================================================

Turns an HTTPResponse into the exact bytes written to the socket.

=============================================================================
WIRE LAYOUT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  HTTP/1.1 200 OK\r\n                 ← status line (status table)   │
    │  Content-Encoding: gzip\r\n          ← only if gzip was applied     │
    │  Content-Type: text/plain\r\n        ← only if content_type != NONE │
    │  Content-Length: 23\r\n              ← only if final body non-empty │
    │  Connection: close\r\n               ← insert_connection_close()    │
    │  \r\n                                ← always present               │
    │  <body bytes>                        ← possibly compressed          │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Header order is fixed: Content-Encoding, Content-Type, Content-Length.
Content-Length is computed on the FINAL body, i.e. after compression.

A response with no headers at all is still well formed:

    HTTP/1.1 201 Created\r\n\r\n

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional, Union
import logging

from .content_types import ContentType
from .encoding import GZIP_TOKEN, gzip_body
from .status_codes import HTTPStatus, status_line


logger = logging.getLogger(__name__)


CRLF = b"\r\n"
HEADER_TERMINATOR = b"\r\n\r\n"
CONNECTION_CLOSE = b"Connection: close"


@dataclass(frozen=True)
class Serialized:
    """
    Result of serializing a response.

    Attributes:
        data:             Bytes to write to the socket.
        content_encoding: "gzip" if the body was compressed, else None.
        body_length:      Length of the body actually sent.
    """

    data: bytes
    content_encoding: Optional[str] = None
    body_length: int = 0


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Handler returns          serialize()             Socket sends
        HTTPResponse    ─────►   Serialized    ─────►    raw bytes
            │                       │                        │
        HTTPResponse(            b"HTTP/1.1 200 OK\r\n   conn.send_response(
          status=200,              Content-Type: ...\r\n     data
          content_type=...,        \r\n                    )
          body=b"abc",             abc"
          gzip=False)
    =========================================================================

    gzip is the handler's request for compression; the serializer decides
    whether it actually happens (empty bodies and compression failures are
    sent as-is).
    """

    status: int = HTTPStatus.OK
    content_type: ContentType = ContentType.NONE
    body: bytes = b""
    gzip: bool = False
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Unknown codes serialize as "200 OK" (logged by status_codes).
        """
        return status_line(self.status, self.version)

    def serialize(self) -> Serialized:
        """
        Serialize the response.

        =====================================================================
        SERIALIZATION STEPS
        =====================================================================

            1. status line
            2. gzip requested and body non-empty?
                 compress ok   → body = compressed, Content-Encoding: gzip
                 compress fail → identity body, no encoding header
            3. Content-Type unless NONE
            4. Content-Length unless the final body is empty
            5. CRLF-joined headers, blank line, body
        =====================================================================
        """
        body = self.body
        encoding: Optional[str] = None

        if self.gzip and body:
            compressed = gzip_body(body)
            if compressed is not None:
                body = compressed
                encoding = GZIP_TOKEN

        lines = [self.status_line]
        if encoding:
            lines.append(f"Content-Encoding: {encoding}")
        if self.content_type is not ContentType.NONE:
            lines.append(f"Content-Type: {self.content_type.header_value}")
        if body:
            lines.append(f"Content-Length: {len(body)}")

        # Two trailing empty entries give the blank line after the headers
        head = "\r\n".join(lines + ["", ""]).encode("latin-1")
        return Serialized(data=head + body, content_encoding=encoding, body_length=len(body))

    def to_bytes(self) -> bytes:
        """Serialize and return only the wire bytes."""
        return self.serialize().data


def serialize(response: HTTPResponse) -> Serialized:
    """Serialize a response (module-level form of HTTPResponse.serialize)."""
    return response.serialize()


def insert_connection_close(data: bytes) -> bytes:
    """
    Add "Connection: close" to an already serialized response.

    The header goes after the existing headers and before the blank line:

        HTTP/1.1 200 OK\r\n                HTTP/1.1 200 OK\r\n
        Content-Length: 3\r\n      ──►     Content-Length: 3\r\n
        \r\n                               Connection: close\r\n
        abc                                \r\n
                                           abc

    Args:
        data: Output of HTTPResponse.to_bytes().

    Raises:
        ValueError: If data has no header terminator.
    """
    header_end = data.find(HEADER_TERMINATOR)
    if header_end == -1:
        raise ValueError("Serialized response has no header terminator")
    return data[:header_end] + CRLF + CONNECTION_CLOSE + data[header_end:]


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Quick one-liners for the responses the handlers produce.
#
#     return ok("abc", gzip=request.accepts_gzip)
#     return not_found()
#
# Error responses never carry a body or a Content-Type.
# =============================================================================

def ok(
    body: Union[str, bytes] = b"",
    content_type: ContentType = ContentType.TEXT_PLAIN,
    gzip: bool = False
) -> HTTPResponse:
    """
    Create a 200 OK response.

    Strings are encoded as UTF-8.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    return HTTPResponse(HTTPStatus.OK, content_type, body, gzip)


def created() -> HTTPResponse:
    """Create a 201 Created response with an empty body."""
    return HTTPResponse(HTTPStatus.CREATED)


def bad_request() -> HTTPResponse:
    return HTTPResponse(HTTPStatus.BAD_REQUEST)


def not_found() -> HTTPResponse:
    return HTTPResponse(HTTPStatus.NOT_FOUND)


def payload_too_large() -> HTTPResponse:
    return HTTPResponse(HTTPStatus.PAYLOAD_TOO_LARGE)


def internal_error() -> HTTPResponse:
    return HTTPResponse(HTTPStatus.INTERNAL_SERVER_ERROR)


def error_response(status_code: int) -> HTTPResponse:
    """Bodiless response for an arbitrary error status."""
    return HTTPResponse(status_code)
