"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered request reading, response
writing, state tracking and a close-exactly-once guarantee.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

TCP does not preserve message boundaries. A request sent in one write may
arrive split over several recv() calls, and two back-to-back requests may
arrive in a single one:

    Client sends:                        Server might receive:
        POST /files/a HTTP/1.1\r\n           recv() → "POST /files/a HT"
        Content-Length: 5\r\n                recv() → "TP/1.1\r\nContent-Le"
        \r\n                                 recv() → "ngth: 5\r\n\r\nhel"
        hello                                recv() → "lo"

So the Connection buffers and looks for protocol delimiters:

1. Read until \r\n\r\n (end of headers)
2. Take Content-Length from the headers (0 when absent or invalid)
3. Read until the body is complete
4. Hand back exactly one request; keep any extra bytes for the next one

Each recv() asks for buffer_size bytes (1024 by default).

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    READING ──────► DISPATCHING ──────► WRITING ──────┐
       ▲                                   │          │
       │          keep-alive               │          │ should_close
       └───────────────────────────────────┘          │ or write error
       │                                              ▼
       └── EOF / read error / idle timeout ──────►  CLOSED

CLOSED is terminal. close() is idempotent and Connection is a context
manager, so every exit path releases the socket exactly once.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..http.request import parse_content_length


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"

# close() drains unread client data for at most this long, and this much
DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class RequestTooLarge(ValueError):
    """A buffered request exceeded max_request_size."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Request too large: {size} bytes (limit {limit})")
        self.size = size
        self.limit = limit


class ConnectionState(Enum):
    """Connection lifecycle states."""
    READING = "reading"            # Waiting for / buffering a request
    DISPATCHING = "dispatching"    # Request complete, being parsed and routed
    WRITING = "writing"            # Sending the response
    CLOSED = "closed"              # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  1. BUFFERED READING                                                │
    │     └── _buffer holds partial data between recv() calls             │
    │     └── leftover bytes belong to the next request                   │
    │                                                                     │
    │  2. SIZE LIMIT                                                      │
    │     └── RequestTooLarge once a request outgrows max_request_size    │
    │                                                                     │
    │  3. STATE TRACKING                                                  │
    │     └── READING / DISPATCHING / WRITING / CLOSED                    │
    │                                                                     │
    │  4. CLOSE EXACTLY ONCE                                              │
    │     └── idempotent close(), context manager                         │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier (for logging).
        state: Current connection state.
        requests_handled: Number of complete requests read so far.
        idle_timeout: Seconds to wait for data before giving up
                      (None = wait forever).
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.READING
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 1024
    idle_timeout: Optional[float] = None
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        # Accepted sockets inherit the listener's timeout on some platforms
        self.socket.setblocking(True)
        self.socket.settimeout(self.idle_timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def pending(self) -> int:
        """Bytes buffered beyond the last request returned."""
        return len(self._buffer)

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request from the socket.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    read_request() Flow                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │   drop leading CR/LF/whitespace                                 │
        │              │                                                  │
        │   while no \r\n\r\n:  recv() → buffer                           │
        │              │        (whitespace-only data keeps us here)      │
        │              │                                                  │
        │   Content-Length from the header block                          │
        │              │                                                  │
        │   while body incomplete:  recv() → buffer                       │
        │              │                                                  │
        │   split off one request, keep the rest                          │
        │                                                                 │
        └─────────────────────────────────────────────────────────────────┘

        Returns:
            Complete request bytes, or None if the peer closed the
            connection, the read failed, or the idle timeout expired.

        Raises:
            RequestTooLarge: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING

        try:
            self._buffer = self._buffer.lstrip()
            while HEADER_TERMINATOR not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer = (self._buffer + chunk).lstrip()
                self._check_size(len(self._buffer))

            header_end = self._buffer.find(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = self._parse_content_length(self._buffer[:header_end])
            request_end = body_start + content_length
            self._check_size(request_end)

            while len(self._buffer) < request_end:
                chunk = self._recv()
                if not chunk:
                    logger.debug(
                        f"[{self.id}] Peer closed mid-body "
                        f"({len(self._buffer) - body_start}/{content_length} bytes)"
                    )
                    return None
                self._buffer += chunk

        except socket.timeout:
            logger.debug(f"[{self.id}] Idle timeout after {self.idle_timeout}s")
            return None

        request_data = self._buffer[:request_end]
        self._buffer = self._buffer[request_end:]

        self.requests_handled += 1
        self.state = ConnectionState.DISPATCHING
        return request_data

    def _recv(self) -> bytes:
        """
        Receive up to buffer_size bytes.

        Returns:
            Received bytes, or b"" if the connection is gone.
        """
        try:
            data = self.socket.recv(self.buffer_size)
        except socket.timeout:
            raise
        except OSError as e:
            logger.debug(f"[{self.id}] Read failed: {e}")
            return b""
        self.last_activity = time.time()
        return data

    def _check_size(self, size: int) -> None:
        if size > self.max_request_size:
            raise RequestTooLarge(size, self.max_request_size)

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Content-Length from a raw header block, 0 if absent or invalid.

        Uses the parser's rule (all fields must agree), so an invalid or
        conflicting value reads no body here and is rejected by the parser.
        """
        values = []
        for line in headers.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                values.append(value.decode("latin-1"))
        if not values:
            return 0
        return parse_content_length(values) or 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response data to the client.

        Uses sendall() so the whole response goes out or the call fails.

        Returns:
            True if send succeeded, False if the connection is lost.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.last_activity = time.time()
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN so the client sees end-of-response
        2. drain what the client still sends, bounded by DRAIN_TIMEOUT
           in total and DRAIN_LIMIT bytes
        3. close(): release the file descriptor

        Safe to call more than once; only the first call does anything.
        """
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0
        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(self.buffer_size)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        """
        Context manager entry:

            with Connection(sock, addr) as conn:
                data = conn.read_request()
                conn.send_response(response)
            # Connection closed here
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
