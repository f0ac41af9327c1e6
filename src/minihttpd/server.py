"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together: SocketServer accepts, each connection thread runs
the read → parse → route → serialize → write loop below until the
connection should close.

=============================================================================
CONNECTION LOOP
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   with conn:                                    (closes once)       │
    │     loop:                                                           │
    │       READING      raw = conn.read_request()                        │
    │                      None ───────────────────────────► CLOSED       │
    │                      RequestTooLarge ──► 413 + close ─► CLOSED      │
    │                                                                     │
    │       DISPATCHING  result = parser.parse(raw)                       │
    │                      malformed (strict) ─► 400 + close ► CLOSED     │
    │                    response = middleware(router)(request)           │
    │                      handler raised ──► 500                         │
    │                                                                     │
    │       WRITING      data = response.to_bytes()                       │
    │                    should_close? insert "Connection: close"         │
    │                    conn.send_response(data)                         │
    │                      send failed ────────────────────► CLOSED       │
    │                      should_close ───────────────────► CLOSED       │
    │                      otherwise ──────────────────────► READING      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, RequestTooLarge
from .http import (
    HTTPRequest, RequestParser,
    HTTPResponse, HTTPStatus,
    Router, build_router,
    insert_connection_close, internal_error,
)
from .http.response import error_response
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Minimal HTTP/1.1 server.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(ServerConfig(port=4221, directory="/tmp/files"))
        server.run()    # blocks until SIGINT/SIGTERM or shutdown()

    A custom Router may be passed instead of the built-in route table:

        router = Router()
        router.add_route("/", root, exact=True)
        HTTPServer(config, router=router).run()

    =========================================================================
    ARCHITECTURE
    =========================================================================

    - ServerConfig: immutable configuration
    - SocketServer: TCP listener, one thread per connection
    - RequestParser: bytes → ParseResult
    - MiddlewarePipeline: access logging around the router
    - Router: prefix routes → handlers

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        router: Optional[Router] = None
    ):
        """
        Initialize the HTTP server.

        Args:
            config: Server configuration (defaults if not provided).
            router: Route table; built from config when omitted.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = router or build_router(self.config)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware())

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    def use(self, middleware: Middleware) -> "HTTPServer":
        """
        Add middleware (runs inside the access logger).

        Returns:
            Self for method chaining.
        """
        self._middleware.add(middleware)
        self._handler = None
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once listening on port 0."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    def _get_handler(self) -> Callable[[HTTPRequest], HTTPResponse]:
        if self._handler is None:
            self._handler = self._middleware.wrap(self._router.handle)
        return self._handler

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server (blocking).

        Returns after shutdown() is called or SIGINT/SIGTERM arrives.

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        self._setup_logging()
        self._get_handler()
        self._running = True

        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port}"
        )
        if self.config.directory:
            logger.info(f"Serving /files from {self.config.directory}")
        else:
            logger.info("No --directory given, /files routes will answer 404")

        try:
            self._socket_server.start(self._process_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._running = False
            logger.info("Server stopped")

    def shutdown(self):
        """Stop accepting connections. Safe from any thread."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is listening. True if it is."""
        return self._socket_server.wait_until_ready(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("minihttpd").setLevel(level)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def respond(
        self,
        raw_request: bytes,
        client_address: Tuple[str, int] = ("", 0)
    ) -> Tuple[bytes, bool]:
        """
        Turn one complete raw request into response bytes.

        The socket-free half of the connection loop.

        Returns:
            (bytes to send, whether to close the connection afterwards)
        """
        result = self._parser.parse(raw_request, client_address)
        request = result.request

        if not result.ok:
            # 413 and framing errors are never routed, even leniently: the
            # body was not read whole or its boundary is unknown
            if (
                self.config.strict_parsing
                or result.error.fatal
                or result.status_code != HTTPStatus.BAD_REQUEST
            ):
                logger.info(f"Rejecting request from {client_address[0]}: {result.error}")
                return self._error_bytes(result.status_code), True
            logger.debug(f"Routing malformed request best-effort: {result.error}")

        should_close = request.should_close
        response = self._dispatch(request)

        data = response.to_bytes()
        if should_close:
            data = insert_connection_close(data)
        return data, should_close

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """Run the middleware-wrapped router; any exception becomes a 500."""
        try:
            return self._get_handler()(request)
        except Exception as e:
            logger.exception(f"Handler error for {request.method} {request.path}: {e}")
            return internal_error()

    def _process_connection(self, conn: Connection):
        """
        Serve one connection until it should close (runs on its own thread).

        Args:
            conn: The client connection; closed on every exit path.
        """
        with conn:
            while True:
                try:
                    try:
                        raw_request = conn.read_request()
                    except RequestTooLarge as e:
                        logger.warning(f"[{conn.id}] {e}")
                        conn.send_response(self._error_bytes(HTTPStatus.PAYLOAD_TOO_LARGE))
                        break

                    if raw_request is None:
                        break

                    data, should_close = self.respond(raw_request, conn.address)

                    if not conn.send_response(data):
                        break
                    if should_close:
                        break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    @staticmethod
    def _error_bytes(status: int) -> bytes:
        """Bodiless error response that also closes the connection."""
        return insert_connection_close(error_response(status).to_bytes())


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Create a server with the built-in route table.

    Example:
        app = create_app(ServerConfig(port=4221, directory="/tmp"))
        app.run()
    """
    return HTTPServer(config)
