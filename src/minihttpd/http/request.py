"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes buffered by a Connection into an HTTPRequest.
No HTTP library is involved: the request line and headers are split by hand.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │    POST /files/notes.txt HTTP/1.1\r\n                          │ │
    │  │    ─┬── ────────┬─────── ────┬───                              │ │
    │  │   Method       Path        Version                             │ │
    │  └────────────────────────────────────────────────────────────────┘ │
    │                                                                     │
    │  ┌─ HEADERS ──────────────────────────────────────────────────────┐ │
    │  │    Host: localhost:4221\r\n                                    │ │
    │  │    User-Agent: curl/8.4.0\r\n                                  │ │
    │  │    Content-Length: 5\r\n                                       │ │
    │  └────────────────────────────────────────────────────────────────┘ │
    │                                                                     │
    │  ┌─ EMPTY LINE (separator) ───────────────────────────────────────┐ │
    │  │    \r\n                                                        │ │
    │  └────────────────────────────────────────────────────────────────┘ │
    │                                                                     │
    │  ┌─ BODY (optional, Content-Length bytes) ────────────────────────┐ │
    │  │    hello                                                       │ │
    │  └────────────────────────────────────────────────────────────────┘ │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

1. REQUEST LINE: split on the first two spaces into method, path, version.
   Fewer than three tokens leaves all three empty and marks the request
   malformed. The path is kept raw: no URL decoding, query string intact.

2. HEADERS: every line up to the first empty line. Each line is split on
   its first colon; lines without a colon are skipped. Names are lower-cased
   and both name and value are trimmed. A repeated header overwrites the
   earlier value.

3. BODY: everything after the first \r\n\r\n, cut down to Content-Length
   when that header is present. An invalid Content-Length marks the request
   malformed.

=============================================================================
RESULT TYPE INSTEAD OF EXCEPTIONS
=============================================================================

parse() never raises. It returns a ParseResult holding a best-effort
HTTPRequest plus an optional HTTPParseError:

    result = parser.parse(raw)
    if result.ok:
        route(result.request)
    else:
        respond(result.error.status_code)   # 400 Bad Request, 413, ...

This keeps "well-formed but empty" (e.g. no headers, empty body) apart from
"malformed", and lets the caller decide whether to reject or degrade.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Tuple
import re

from .encoding import accepts_gzip
from .status_codes import HTTPStatus


class HTTPParseError(Exception):
    """
    Describes why a request could not be parsed cleanly.

    Carries the HTTP status the server should answer with:

        400 Bad Request       - malformed request line or Content-Length
        413 Payload Too Large - request exceeds the size limit

    fatal=True marks errors in the message framing (Content-Length): the
    body boundary is unknown, so the request must not be routed and the
    connection must not be reused.
    """

    def __init__(
        self,
        message: str,
        status_code: int = HTTPStatus.BAD_REQUEST,
        fatal: bool = False
    ):
        super().__init__(message)
        self.status_code = status_code
        self.fatal = fatal


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    Immutable once parsed; it lives for exactly one request/response cycle.

    Attributes:
        method:         Request method token ("GET", "POST", ...).
        path:           Raw request target, e.g. "/echo/abc".
        version:        Protocol version ("HTTP/1.1", "HTTP/1.0").
        headers:        Lower-cased header name -> trimmed value.
        body:           Raw body bytes (b"" when absent).
        client_address: (ip, port) of the peer, for logging.
        path_params:    Filled in by the Router (e.g. {"text": "abc"} for
                        /echo/abc); empty straight out of the parser.
    """

    method: str = ""
    path: str = ""
    version: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: tuple[str, int] = ("", 0)
    path_params: Dict[str, str] = field(default_factory=dict)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def user_agent(self) -> str:
        """User-Agent header value, "" when absent."""
        return self.headers.get("user-agent", "")

    @property
    def content_length(self) -> int:
        """
        Content-Length header as an integer.

        Returns 0 if the header is missing or not a number.
        """
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def accepts_gzip(self) -> bool:
        """True if Accept-Encoding lists the "gzip" token."""
        return accepts_gzip(self.headers.get("accept-encoding"))

    @property
    def is_http10(self) -> bool:
        """True if the request line declares HTTP/1.0."""
        return self.version == "HTTP/1.0"

    @property
    def should_close(self) -> bool:
        """
        Check if the connection must be closed after responding.

        =====================================================================
        CONNECTION LOGIC
        =====================================================================

            Connection: close (any case)  → close
            HTTP/1.0 request line         → close
            otherwise (HTTP/1.1 default)  → keep alive

        HTTP/1.0 "Connection: keep-alive" is not honored; every HTTP/1.0
        request gets exactly one response.
        =====================================================================
        """
        return self.headers.get("connection", "").lower() == "close" or self.is_http10

    def get_header(self, name: str, default: str = "") -> str:
        """
        Get a header value (case-insensitive lookup).

        Example:
            request.get_header("User-Agent")  # works for "user-agent" too
        """
        return self.headers.get(name.lower(), default)


@dataclass(frozen=True)
class ParseResult:
    """
    Outcome of RequestParser.parse().

    request is always populated (best effort, empty strings for the parts
    that could not be read); error is None for a well-formed request.
    """

    request: HTTPRequest
    error: Optional[HTTPParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> Optional[int]:
        """Status to answer with for a malformed request, else None."""
        return self.error.status_code if self.error else None

    def unwrap(self) -> HTTPRequest:
        """Return the request, raising the parse error if there is one."""
        if self.error is not None:
            raise self.error
        return self.request


class RequestParser:
    """
    Parses raw HTTP request bytes into ParseResult objects.

    ==========================================================================
    PARSER PIPELINE
    ==========================================================================

        Raw Request Bytes
              │
              ▼
        ┌──────────────────────────────────────────────────────────────────┐
        │  1. Size check ────────────► too large? error 413                │
        │  2. Split at \r\n\r\n ─────► head / body                         │
        │  3. Request line ──────────► "M P V", < 3 tokens? error 400      │
        │  4. Headers ───────────────► "name: value", lower-cased names    │
        │  5. Body ──────────────────► truncated to Content-Length         │
        │  6. Build HTTPRequest + ParseResult                              │
        └──────────────────────────────────────────────────────────────────┘

    The header block is decoded as latin-1, which maps every byte to one
    code point, so odd bytes in header values never abort the parse.
    ==========================================================================
    """

    HEADER_TERMINATOR = b"\r\n\r\n"

    # HTTP-version = "HTTP/" DIGIT "." DIGIT
    VERSION_PATTERN = re.compile(r"^HTTP/\d\.\d$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Initialize the request parser.

        Args:
            max_request_size: Largest accepted request in bytes (10 MB default).
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> ParseResult:
        """
        Parse raw HTTP request bytes.

        Args:
            data: One complete request as buffered by the Connection.
            client_address: Peer (ip, port) for logging.

        Returns:
            ParseResult with the request and, if malformed, the error.
        """
        # =====================================================================
        # STEP 1: Size limit
        # =====================================================================
        if len(data) > self.max_request_size:
            return ParseResult(
                HTTPRequest(client_address=client_address),
                HTTPParseError(
                    f"Request too large: {len(data)} bytes",
                    status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
                ),
            )

        if not data.strip():
            return ParseResult(
                HTTPRequest(client_address=client_address),
                HTTPParseError("Empty request"),
            )

        # =====================================================================
        # STEP 2: Split head and body at the first blank line
        # =====================================================================
        header_end = data.find(self.HEADER_TERMINATOR)
        if header_end == -1:
            head, body = data, b""
        else:
            head = data[:header_end]
            body = data[header_end + len(self.HEADER_TERMINATOR):]

        lines = head.decode("latin-1").split("\r\n")

        # =====================================================================
        # STEP 3: Request line
        # =====================================================================
        method, path, version, error = self._parse_request_line(lines[0])

        # =====================================================================
        # STEP 4: Headers
        # =====================================================================
        fields = self._parse_header_fields(lines[1:])
        headers = dict(fields)

        # =====================================================================
        # STEP 5: Body, bounded by Content-Length
        # =====================================================================
        # Anything past Content-Length belongs to the next request on a
        # keep-alive connection; the Connection already split it off, this
        # only guards direct callers.
        lengths = [value for name, value in fields if name == "content-length"]
        if lengths:
            length = parse_content_length(lengths)
            if length is None:
                # Framing errors win over request-line errors: they decide
                # whether the request may be routed at all
                error = HTTPParseError(
                    f"Invalid Content-Length: {', '.join(lengths)!r}",
                    fatal=True,
                )
            else:
                body = body[:length]

        request = HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body,
            client_address=client_address,
        )
        return ParseResult(request, error)

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, str, Optional[HTTPParseError]]:
        """
        Split "METHOD SP PATH SP VERSION".

        Returns:
            (method, path, version, error). On fewer than three tokens all
            three strings are empty and error is set.
        """
        parts = line.split(" ", 2)
        if len(parts) < 3:
            return "", "", "", HTTPParseError(f"Malformed request line: {line!r}")

        method, path, version = parts
        if not method or not path:
            return method, path, version, HTTPParseError(
                f"Malformed request line: {line!r}"
            )
        if not self.VERSION_PATTERN.match(version):
            return method, path, version, HTTPParseError(
                f"Malformed HTTP version: {version!r}"
            )
        return method, path, version, None

    def _parse_header_fields(self, lines: List[str]) -> List[Tuple[str, str]]:
        """
        Parse header lines into (name, value) pairs, in order.

        Stops at the first empty line. Lines without a colon are skipped
        (lenient). Repeats are kept; dict(fields) makes the last one win.
        """
        fields: List[Tuple[str, str]] = []
        for line in lines:
            if line == "":
                break
            if ":" not in line:
                continue
            name, value = line.split(":", 1)
            fields.append((name.strip().lower(), value.strip()))
        return fields


def parse_content_length(values: List[str]) -> Optional[int]:
    """
    Resolve every Content-Length field of one request to a single length.

    Each value must be ASCII digits and repeated fields must agree
    (RFC 9112 section 6.3). The Connection sizes its reads with this too,
    so both sides always agree on where the body ends.

    Returns:
        The length, or None if any value is invalid, the values conflict,
        or there are none.

    Example:
        parse_content_length(["5"])          # 5
        parse_content_length(["5", "5"])     # 5
        parse_content_length(["5", "0"])     # None
        parse_content_length(["\\u00b2"])    # None (isdigit() but not ASCII)
    """
    lengths = set()
    for value in values:
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            return None
        lengths.add(int(value))
    if len(lengths) != 1:
        return None
    return lengths.pop()


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> ParseResult:
    """
    Parse an HTTP request in one call.

    Creates a RequestParser and parses the data. Use RequestParser directly
    when parsing many requests with the same settings.
    """
    parser = RequestParser(max_request_size=max_size)
    return parser.parse(data, client_address)
