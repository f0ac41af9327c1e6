"""
=============================================================================
MINIHTTPD - Minimal HTTP/1.1 Server on Raw Sockets
=============================================================================

Accepts TCP connections, parses requests by hand, routes them to a small
fixed set of handlers and serializes responses by hand.

=============================================================================
ROUTES
=============================================================================

    GET  /                → 200, empty
    GET  /echo/{text}     → 200 text/plain {text}            (gzip-negotiable)
    GET  /user-agent      → 200 text/plain <User-Agent>      (gzip-negotiable)
    GET  /files/{name}    → 200 application/octet-stream, or 404
    POST /files/{name}    → 201, body stored as the file; 500 on failure
    anything else         → 404

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    minihttpd/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m minihttpd)
    ├── server.py            # HTTPServer: the connection loop
    ├── config.py            # ServerConfig frozen dataclass
    ├── core/                # Transport
    │   ├── socket_server.py # TCP listener, thread per connection
    │   └── connection.py    # Buffered socket wrapper
    ├── http/                # Protocol
    │   ├── request.py       # Request parsing (ParseResult)
    │   ├── response.py      # Response serialization
    │   ├── router.py        # Prefix routing + route table
    │   ├── encoding.py      # gzip negotiation
    │   ├── status_codes.py  # Status table
    │   └── content_types.py # Content-Type enum
    ├── middleware/          # Access logging
    │   ├── base.py
    │   └── logging.py
    └── handlers/
        ├── basic.py         # root, echo, user-agent
        └── files.py         # FileStore + /files handler

=============================================================================
QUICK START
=============================================================================

    from minihttpd import HTTPServer, ServerConfig

    HTTPServer(ServerConfig(directory="/tmp/files")).run()

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "__version__"]
