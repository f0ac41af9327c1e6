"""
Plain request handlers: root, echo and user-agent.

Each handler is a function taking an HTTPRequest and returning an
HTTPResponse. None of them touch shared state.

    GET /               → 200, no body, no Content-Type
    GET /echo/{text}    → 200 text/plain "{text}"         (gzip-negotiable)
    GET /user-agent     → 200 text/plain <User-Agent>     (gzip-negotiable)
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok
from ..http.content_types import ContentType


def root(request: HTTPRequest) -> HTTPResponse:
    """Answer "/" with an empty 200."""
    return ok(b"", ContentType.NONE)


def echo(request: HTTPRequest) -> HTTPResponse:
    """
    Echo the path remainder back as text/plain.

    The remainder is raw, so "/echo/a%20b" echoes "a%20b" and a query
    string stays part of the body.
    """
    text = request.path_params.get("text", "")
    # latin-1 undoes the parser's decoding, so the echoed bytes are the sent bytes
    return ok(text.encode("latin-1"), ContentType.TEXT_PLAIN, gzip=request.accepts_gzip)


def user_agent(request: HTTPRequest) -> HTTPResponse:
    """Echo the User-Agent header; an absent header gives an empty 200."""
    return ok(request.user_agent.encode("latin-1"), ContentType.TEXT_PLAIN, gzip=request.accepts_gzip)
