"""
Unit tests for Connection: buffered reads over a socketpair.
"""

import socket
import threading
import time

import pytest

from minihttpd.core.connection import Connection, ConnectionState, RequestTooLarge


@pytest.fixture
def pair():
    """(server side, client side) of a connected socket pair."""
    server_sock, client_sock = socket.socketpair()
    yield server_sock, client_sock
    for s in (server_sock, client_sock):
        try:
            s.close()
        except OSError:
            pass


def make_connection(sock: socket.socket, **kwargs) -> Connection:
    kwargs.setdefault("idle_timeout", 5.0)
    return Connection(socket=sock, address=("127.0.0.1", 5000), **kwargs)


class TestReadRequest:
    """Tests for Connection.read_request()."""

    def test_single_request(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        raw = b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
        client_sock.sendall(raw)

        assert conn.read_request() == raw
        assert conn.state is ConnectionState.DISPATCHING
        assert conn.requests_handled == 1

    def test_request_split_across_reads(self, pair):
        """Small buffer_size forces many recv() calls."""
        server_sock, client_sock = pair
        conn = make_connection(server_sock, buffer_size=7)

        raw = b"POST /files/a HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
        client_sock.sendall(raw)

        assert conn.read_request() == raw

    def test_body_larger_than_buffer(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        body = b"x" * 5000
        raw = b"POST /files/a HTTP/1.1\r\nContent-Length: 5000\r\n\r\n" + body

        sender = threading.Thread(target=client_sock.sendall, args=(raw,))
        sender.start()
        data = conn.read_request()
        sender.join()

        assert data == raw

    def test_body_arrives_later(self, pair):
        """Headers first, body in a second write."""
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        head = b"POST /files/a HTTP/1.1\r\nContent-Length: 3\r\n\r\n"
        client_sock.sendall(head)
        timer = threading.Timer(0.1, client_sock.sendall, args=(b"abc",))
        timer.start()

        assert conn.read_request() == head + b"abc"
        timer.join()

    def test_pipelined_requests_kept(self, pair):
        """Bytes after one request are returned as the next one."""
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        first = b"POST /files/a HTTP/1.1\r\nContent-Length: 2\r\n\r\nhi"
        second = b"GET /echo/x HTTP/1.1\r\n\r\n"
        client_sock.sendall(first + second)

        assert conn.read_request() == first
        assert conn.pending == len(second)
        assert conn.read_request() == second
        assert conn.requests_handled == 2

    def test_leading_crlf_skipped(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        raw = b"GET / HTTP/1.1\r\n\r\n"
        client_sock.sendall(b"\r\n\r\n" + raw)

        assert conn.read_request() == raw

    def test_invalid_content_length_reads_headers_only(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        raw = b"POST /files/a HTTP/1.1\r\nContent-Length: abc\r\n\r\n"
        client_sock.sendall(raw)

        assert conn.read_request() == raw

    def test_eof_before_request(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        client_sock.shutdown(socket.SHUT_WR)

        assert conn.read_request() is None

    def test_eof_mid_body(self, pair):
        """A truncated body is dropped, not dispatched."""
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        client_sock.sendall(b"POST /files/a HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc")
        client_sock.shutdown(socket.SHUT_WR)

        assert conn.read_request() is None
        assert conn.requests_handled == 0

    def test_idle_timeout(self, pair):
        server_sock, _ = pair
        conn = make_connection(server_sock, idle_timeout=0.1)

        assert conn.read_request() is None

    def test_headers_too_large(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock, max_request_size=64)

        client_sock.sendall(b"GET /" + b"a" * 200 + b" HTTP/1.1\r\n")

        with pytest.raises(RequestTooLarge) as exc_info:
            conn.read_request()
        assert exc_info.value.limit == 64

    def test_declared_body_too_large(self, pair):
        """Rejected from Content-Length alone, before the body arrives."""
        server_sock, client_sock = pair
        conn = make_connection(server_sock, max_request_size=100)

        client_sock.sendall(b"POST /files/a HTTP/1.1\r\nContent-Length: 1000\r\n\r\n")

        with pytest.raises(RequestTooLarge):
            conn.read_request()


class TestContentLengthScan:
    """Tests for the header scan used to size the body."""

    @pytest.mark.parametrize("headers,expected", [
        (b"POST / HTTP/1.1\r\nContent-Length: 12", 12),
        (b"POST / HTTP/1.1\r\ncontent-length:7", 7),
        (b"POST / HTTP/1.1\r\nHost: x", 0),
        (b"POST / HTTP/1.1\r\nContent-Length: -1", 0),
        (b"POST / HTTP/1.1\r\nContent-Length: 1e3", 0),
        (b"POST / HTTP/1.1\r\nContent-Length: \xb2", 0),
        (b"POST / HTTP/1.1\r\nContent-Length: 3\r\nContent-Length: 3", 3),
        (b"POST / HTTP/1.1\r\nContent-Length: 5\r\nContent-Length: 0", 0),
    ])
    def test_parse_content_length(self, headers: bytes, expected: int):
        assert Connection._parse_content_length(headers) == expected


class TestWriteAndClose:
    """Tests for send_response() and close()."""

    def test_send_response(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\n\r\n") is True
        assert conn.state is ConnectionState.WRITING
        assert client_sock.recv(1024) == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_send_after_peer_gone(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        client_sock.close()

        # The first write may still be buffered; a later one must fail
        results = [conn.send_response(b"x" * 65536) for _ in range(20)]
        assert results[-1] is False

    def test_close_sends_eof(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        client_sock.shutdown(socket.SHUT_WR)
        conn.close()

        assert conn.closed
        assert client_sock.recv(1024) == b""

    def test_close_idempotent(self, pair):
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        client_sock.shutdown(socket.SHUT_WR)

        conn.close()
        conn.close()

        assert conn.state is ConnectionState.CLOSED

    def test_close_drain_is_bounded(self, pair):
        """A peer that never stops sending cannot hold close() open."""
        server_sock, client_sock = pair
        conn = make_connection(server_sock)
        stop = threading.Event()

        def chatter():
            while not stop.is_set():
                try:
                    client_sock.send(b"x" * 16)
                except OSError:
                    return
                time.sleep(0.05)

        sender = threading.Thread(target=chatter, daemon=True)
        sender.start()
        try:
            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started
        finally:
            stop.set()
            sender.join(timeout=2.0)

        assert conn.closed
        assert elapsed < 2.0

    def test_context_manager_closes(self, pair):
        server_sock, client_sock = pair
        client_sock.shutdown(socket.SHUT_WR)

        with make_connection(server_sock) as conn:
            assert not conn.closed
        assert conn.closed

    def test_connection_ids_unique(self, pair):
        server_sock, client_sock = pair
        a = make_connection(server_sock)
        b = make_connection(client_sock)

        assert a.id != b.id
        assert a.client_ip == "127.0.0.1"
