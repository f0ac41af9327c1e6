"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates raw TCP bytes into HTTP messages and back.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTP Request-Response Cycle                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   bytes ──► RequestParser ──► HTTPRequest                           │
    │                                   │                                 │
    │                                   ▼                                 │
    │                                Router ──► handler                   │
    │                                               │                     │
    │                                               ▼                     │
    │   bytes ◄── HTTPResponse.serialize() ◄── HTTPResponse               │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Modules:
    request       - HTTPRequest, RequestParser, ParseResult
    response      - HTTPResponse, serializer, insert_connection_close
    router        - prefix Router and the fixed route table
    encoding      - gzip negotiation and compression
    status_codes  - the status table
    content_types - Content-Type enum

=============================================================================
"""

from .request import HTTPRequest, RequestParser, ParseResult, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    Serialized,
    serialize,
    insert_connection_close,
    ok,
    created,
    bad_request,
    not_found,
    payload_too_large,
    internal_error,
)
from .router import Router, Route, build_router
from .status_codes import HTTPStatus
from .content_types import ContentType
from .encoding import accepts_gzip


__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "ParseResult",
    "HTTPParseError",
    "parse_request",

    # Response
    "HTTPResponse",
    "Serialized",
    "serialize",
    "insert_connection_close",

    # Response helpers
    "ok",
    "created",
    "bad_request",
    "not_found",
    "payload_too_large",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "build_router",

    # Protocol constants
    "HTTPStatus",
    "ContentType",
    "accepts_gzip",
]
