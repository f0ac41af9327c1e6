"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Generator, Optional
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from minihttpd import HTTPServer, ServerConfig


# =============================================================================
# RAW REQUEST FIXTURES
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/abc HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept-Encoding: deflate, gzip\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"hello"
    return (
        b"POST /files/test.txt HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n" % len(body)
    ) + body


@pytest.fixture
def config(tmp_path: Path) -> ServerConfig:
    """Test configuration with a file store and an OS-picked port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        directory=str(tmp_path),
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# LIVE SERVER
# =============================================================================

class TestServer:
    """Runs an HTTPServer on a background thread."""

    __test__ = False  # Not a test class despite the name

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def connect(self, timeout: float = 5.0) -> socket.socket:
        """Open a client socket to the server."""
        return socket.create_connection(("127.0.0.1", self.port), timeout=timeout)

    # =========================================================================
    # CLIENT HELPERS
    # =========================================================================

    @staticmethod
    def read_response(sock: socket.socket) -> tuple[bytes, dict, bytes]:
        """
        Read one response from sock.

        Returns:
            (status line, lower-cased headers, body). The body is read using
            Content-Length, so it works on keep-alive connections.
        """
        data = b""
        while b"\r\n\r\n" not in data:
            chunk = sock.recv(4096)
            if not chunk:
                raise ConnectionError(f"Connection closed mid-response: {data!r}")
            data += chunk

        head, _, body = data.partition(b"\r\n\r\n")
        lines = head.split(b"\r\n")
        headers = {}
        for line in lines[1:]:
            name, _, value = line.partition(b":")
            headers[name.strip().lower().decode()] = value.strip().decode()

        length = int(headers.get("content-length", 0))
        while len(body) < length:
            chunk = sock.recv(4096)
            if not chunk:
                break
            body += chunk

        return lines[0], headers, body

    @staticmethod
    def read_until_closed(sock: socket.socket) -> bytes:
        """Read everything until the server closes the connection."""
        data = b""
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                return data
            data += chunk

    def exchange(self, raw: bytes) -> bytes:
        """Send raw on a fresh connection and return all bytes until close."""
        with self.connect() as sock:
            sock.sendall(raw)
            return self.read_until_closed(sock)


@pytest.fixture
def test_server(config: ServerConfig) -> Generator[TestServer, None, None]:
    """A running server with a tmp_path file store."""
    test_srv = TestServer(HTTPServer(config))
    test_srv.start()

    yield test_srv

    test_srv.stop()


@pytest.fixture
def server(config: ServerConfig) -> HTTPServer:
    """An HTTPServer that is never started; drive it through respond()."""
    return HTTPServer(config)


@pytest.fixture
def server_factory() -> Generator[Callable[[ServerConfig], TestServer], None, None]:
    """Start extra servers with custom config; all are stopped afterwards."""
    started = []

    def start(config: ServerConfig) -> TestServer:
        test_srv = TestServer(HTTPServer(config))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield start

    for test_srv in started:
        test_srv.stop()
