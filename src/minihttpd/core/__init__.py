"""
=============================================================================
CORE NETWORKING
=============================================================================

The transport half of the server: sockets, threads and buffering. Nothing
in here knows about routes or handlers.

    SocketServer  - binds, accepts, one daemon thread per connection
    Connection    - buffered reads, sendall writes, close-exactly-once

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge

__all__ = [
    "SocketServer",      # TCP listener, thread per connection
    "Connection",        # Wrapper for client socket - handles I/O
    "ConnectionState",   # Enum for connection lifecycle states
    "RequestTooLarge",   # Raised when a request outgrows max_request_size
]
