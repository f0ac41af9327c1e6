"""
=============================================================================
TCP LISTENER
=============================================================================

Binds the listening socket, accepts clients, and runs each accepted
connection on its own daemon thread.

=============================================================================
CONCURRENCY MODEL: THREAD PER CONNECTION
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Accept Loop + Connection Threads                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   accept loop (caller's thread)                                     │
    │       │                                                             │
    │       ├── [max_connections set] wait for a free slot                │
    │       ├── accept()                                                  │
    │       ├── Connection(sock, addr, ...)                               │
    │       └── Thread(target=handler, args=(conn,), daemon=True).start() │
    │                                                                     │
    │   conn-1 thread ── read → dispatch → write → ... → close            │
    │   conn-2 thread ── read → dispatch → write → ... → close            │
    │   ...                                                               │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

The listener never waits for a connection to finish before accepting the
next one. By default the number of connection threads is unbounded; with
max_connections set, a BoundedSemaphore holds one slot per live connection
and the accept loop waits for a slot before accepting.

Connection threads are daemons: shutdown stops accepting but does not wait
for in-flight connections.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │    start(handler)                                                   │
    │        ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY, 1s timeout│
    │        ├──► bind() / listen()                                       │
    │        ├──► _setup_signals()   SIGTERM/SIGINT → shutdown()          │
    │        └──► _accept_loop()     blocks until shutdown()              │
    │                                                                     │
    │    shutdown()                  idempotent, any thread               │
    │    _cleanup()                  restore signals, close socket        │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        def handle_connection(conn: Connection):
            with conn:
                ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    # Accept and slot waits wake up this often to notice shutdown
    POLL_INTERVAL = 1.0

    def __init__(self, config: ServerConfig):
        """
        Initialize the socket server.

        The socket is created lazily in start().
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready_event = threading.Event()
        self._original_handlers: dict = {}
        self._bound_address: Optional[Tuple[str, int]] = None

        self._slots: Optional[threading.BoundedSemaphore] = None
        if config.max_connections:
            self._slots = threading.BoundedSemaphore(config.max_connections)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The server's bound address (IP, port).

        Reflects the OS-assigned port once bound, so port 0 works.
        """
        return self._bound_address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """
        Create and configure the server socket.

        SO_REUSEADDR: rebind right after a restart (no TIME_WAIT error)
        SO_REUSEPORT: where available
        TCP_NODELAY:  small responses go out immediately
        timeout 1s:   accept() wakes up to check for shutdown
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except (AttributeError, OSError):
            pass  # Not available on this platform

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(self.POLL_INTERVAL)
        return sock

    def _setup_signals(self):
        """
        Setup signal handlers for graceful shutdown.

        SIGTERM (kill, docker stop) and SIGINT (Ctrl+C) both call
        shutdown(). Python only allows this from the main thread; when the
        server runs on a worker thread (tests, embedding) signals are left
        alone.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Start accepting connections.

        This method BLOCKS until shutdown() is called.

        Args:
            connection_handler: Called on a new daemon thread for every
                                accepted connection. It owns the
                                Connection and must close it.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._setup_signals()

        host, port = self._bound_address
        logger.info(f"Server listening on {host}:{port}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """
        Main loop for accepting connections.

        ┌─────────────────────────────────────────────────────────────────┐
        │                     Accept Loop Flow                            │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │   while self._running:                                          │
        │       ├──► take a slot (only with max_connections)              │
        │       ├──► accept()           1s timeout → loop again           │
        │       ├──► Connection(...)    buffering, limits, state          │
        │       └──► _spawn(conn)       new daemon thread                 │
        │                                                                 │
        └─────────────────────────────────────────────────────────────────┘
        """
        while self._running:
            if not self._acquire_slot():
                continue

            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                self._release_slot()
                continue
            except OSError as e:
                self._release_slot()
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                idle_timeout=self.config.idle_timeout,
                max_request_size=self.config.max_request_size,
            )
            self._spawn(conn, connection_handler)

    def _acquire_slot(self) -> bool:
        """Wait for a connection slot; always True when uncapped."""
        if self._slots is None:
            return True
        return self._slots.acquire(timeout=self.POLL_INTERVAL)

    def _release_slot(self):
        if self._slots is not None:
            self._slots.release()

    def _spawn(self, conn: Connection, connection_handler: Callable[[Connection], None]):
        """Run connection_handler(conn) on a new daemon thread."""
        def run():
            try:
                connection_handler(conn)
            finally:
                # The handler owns the connection; this only covers a
                # handler that died before closing it
                conn.close()
                self._release_slot()

        thread = threading.Thread(target=run, name=f"conn-{conn.id}", daemon=True)
        try:
            thread.start()
        except RuntimeError as e:
            # Can't start new thread: drop this client, keep serving others
            logger.error(f"Failed to start connection thread: {e}")
            conn.close()
            self._release_slot()

    def shutdown(self):
        """
        Initiate graceful shutdown.

        Safe to call from a signal handler or another thread, and safe to
        call more than once.
        """
        if not self._running:
            return
        logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        """Clean up resources on shutdown."""
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. True if it is."""
        return self._ready_event.wait(timeout)
