"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The server speaks a deliberately small subset of HTTP status codes.

=============================================================================
STATUS TABLE
=============================================================================

    ┌────────┬────────────────────────┬──────────────────────────────────────┐
    │  Code  │  Phrase                │  Produced by                         │
    ├────────┼────────────────────────┼──────────────────────────────────────┤
    │  200   │  OK                    │  /, /echo/*, /user-agent, GET /files │
    │  201   │  Created               │  POST /files/*                       │
    │  400   │  Bad Request           │  malformed request line / headers    │
    │  404   │  Not Found             │  unknown route, missing file         │
    │  413   │  Payload Too Large     │  request exceeds max_request_size    │
    │  500   │  Internal Server Error │  file store write failure, crashes   │
    └────────┴────────────────────────┴──────────────────────────────────────┘

Any other code falls back to "200 OK" on the status line. That leniency is
inherited behavior; status_line() logs a warning whenever it kicks in so a
handler returning an unexpected code is visible.

=============================================================================
"""

import logging
from enum import IntEnum
from typing import Union


logger = logging.getLogger(__name__)


class HTTPStatus(IntEnum):
    """
    HTTP status codes understood by the serializer.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.CREATED.phrase
        'Created'
    """

    OK = 200                        # Standard success response
    CREATED = 201                   # Resource stored (POST /files)

    BAD_REQUEST = 400               # Malformed request syntax
    NOT_FOUND = 404                 # No route, or no such resource
    PAYLOAD_TOO_LARGE = 413         # Request larger than max_request_size

    INTERNAL_SERVER_ERROR = 500     # Store write failure / handler crash

    @property
    def phrase(self) -> str:
        """
        Reason phrase used on the status line.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES[self]

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx codes."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}


def resolve_status(code: Union[int, HTTPStatus]) -> HTTPStatus:
    """
    Map an integer code onto the status table.

    Unknown codes resolve to 200 OK.

    Args:
        code: Integer status code or HTTPStatus member.

    Returns:
        The matching HTTPStatus, or HTTPStatus.OK for unknown codes.
    """
    try:
        return HTTPStatus(code)
    except ValueError:
        logger.warning(f"Unknown status code {code}, serializing as 200 OK")
        return HTTPStatus.OK


def status_line(code: Union[int, HTTPStatus], version: str = "HTTP/1.1") -> str:
    """
    Build the status line (without trailing CRLF).

    Example:
        status_line(201)  # "HTTP/1.1 201 Created"
    """
    status = resolve_status(code)
    return f"{version} {status.value} {status.phrase}"
