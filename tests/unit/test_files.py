"""
Unit tests for the file store and the /files handler.
"""

import threading

import pytest

from minihttpd.handlers.files import (
    FileStore,
    FileHandler,
    FileStoreError,
    InvalidResourceName,
    ResourceNotFound,
    StoreWriteError,
    filename_from,
)
from minihttpd.http.request import HTTPRequest
from minihttpd.http.content_types import ContentType


def files_request(method: str, remainder: str, body: bytes = b"") -> HTTPRequest:
    """Request as the router hands it to FileHandler."""
    return HTTPRequest(
        method=method,
        path="/files" + remainder,
        version="HTTP/1.1",
        body=body,
        path_params={"filename": remainder},
    )


@pytest.fixture
def store(tmp_path) -> FileStore:
    return FileStore(tmp_path)


class TestFileStore:
    """Tests for FileStore."""

    def test_write_then_read(self, store: FileStore, tmp_path):
        store.write("test.txt", b"hello")

        assert (tmp_path / "test.txt").read_bytes() == b"hello"
        assert store.read("test.txt") == b"hello"

    def test_write_overwrites(self, store: FileStore):
        store.write("a", b"first version")
        store.write("a", b"2nd")

        assert store.read("a") == b"2nd"

    def test_write_empty(self, store: FileStore):
        store.write("empty", b"")
        assert store.read("empty") == b""

    def test_read_missing(self, store: FileStore):
        with pytest.raises(ResourceNotFound):
            store.read("missing.txt")

    def test_read_directory(self, store: FileStore, tmp_path):
        (tmp_path / "sub").mkdir()

        with pytest.raises(ResourceNotFound):
            store.read("sub")

    def test_subdirectory_inside_root(self, store: FileStore, tmp_path):
        (tmp_path / "sub").mkdir()
        store.write("sub/x", b"1")

        assert (tmp_path / "sub" / "x").read_bytes() == b"1"

    def test_write_into_missing_directory(self, store: FileStore):
        with pytest.raises(StoreWriteError):
            store.write("no/such/dir.txt", b"x")

    @pytest.mark.parametrize("name", [
        "../outside.txt",
        "a/../../outside.txt",
        "",
        ".",
        "bad\x00name",
    ])
    def test_rejected_names(self, store: FileStore, name: str):
        with pytest.raises(InvalidResourceName):
            store.resolve(name)

    def test_absolute_name_rejected(self, store: FileStore, tmp_path):
        with pytest.raises(InvalidResourceName):
            store.resolve(str(tmp_path / "a.txt"))

    def test_traversal_never_writes(self, store: FileStore, tmp_path):
        with pytest.raises(InvalidResourceName):
            store.write("../escaped.txt", b"x")

        assert not (tmp_path.parent / "escaped.txt").exists()

    def test_errors_share_base_class(self):
        assert issubclass(ResourceNotFound, FileStoreError)
        assert issubclass(InvalidResourceName, FileStoreError)
        assert issubclass(StoreWriteError, FileStoreError)

    def test_exists(self, store: FileStore):
        store.write("a", b"1")

        assert store.exists("a")
        assert not store.exists("b")
        assert not store.exists("../a")

    def test_lock_table_empty_after_missing_reads(self, store: FileStore):
        for i in range(1000):
            with pytest.raises(ResourceNotFound):
                store.read(f"missing-{i}")

        assert store._locks == {}

    def test_lock_table_empty_after_writes(self, store: FileStore):
        store.write("a", b"1")
        store.read("a")

        assert store._locks == {}

    def test_same_name_waits_for_lock(self, store: FileStore):
        """A write to a busy name blocks until the holder is done."""
        path = store.resolve("busy")

        with store._locked(path):
            writer = threading.Thread(target=store.write, args=("busy", b"x"))
            writer.start()
            writer.join(timeout=0.2)
            assert writer.is_alive()
            assert store._locks[path].users == 2

            # A different name does not contend
            store.write("other", b"y")

        writer.join(timeout=5.0)
        assert not writer.is_alive()
        assert store.read("busy") == b"x"
        assert store._locks == {}

    def test_concurrent_writes_leave_one_full_version(self, store: FileStore):
        """Readers see one writer's bytes in full, never a mix."""
        payloads = [bytes([65 + i]) * 50_000 for i in range(8)]

        threads = [
            threading.Thread(target=store.write, args=("shared", data))
            for data in payloads
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.read("shared") in payloads


class TestFilenameFrom:
    """Tests for filename_from()."""

    @pytest.mark.parametrize("remainder,expected", [
        ("/notes.txt", "notes.txt"),
        ("/", ""),
        ("", ""),
        ("notes.txt", ""),
        ("/a/b", "a/b"),
    ])
    def test_filename_from(self, remainder: str, expected: str):
        assert filename_from(remainder) == expected


class TestFileHandler:
    """Tests for FileHandler."""

    def test_get_existing(self, store: FileStore, tmp_path):
        (tmp_path / "test.txt").write_bytes(b"hello")

        response = FileHandler(store)(files_request("GET", "/test.txt"))

        assert response.status == 200
        assert response.content_type is ContentType.APPLICATION_OCTET_STREAM
        assert response.body == b"hello"
        assert response.gzip is False

    def test_get_empty_file(self, store: FileStore, tmp_path):
        (tmp_path / "empty").write_bytes(b"")

        response = FileHandler(store)(files_request("GET", "/empty"))

        assert response.status == 200
        assert response.to_bytes() == (
            b"HTTP/1.1 200 OK\r\nContent-Type: application/octet-stream\r\n\r\n"
        )

    def test_get_missing(self, store: FileStore):
        response = FileHandler(store)(files_request("GET", "/nope"))

        assert response.status == 404
        assert response.body == b""

    def test_get_traversal_is_404(self, store: FileStore):
        assert FileHandler(store)(files_request("GET", "/../etc/passwd")).status == 404

    def test_get_bare_files_is_404(self, store: FileStore):
        assert FileHandler(store)(files_request("GET", "")).status == 404

    def test_post_creates(self, store: FileStore, tmp_path):
        response = FileHandler(store)(files_request("POST", "/new.txt", b"hello"))

        assert response.status == 201
        assert response.body == b""
        assert (tmp_path / "new.txt").read_bytes() == b"hello"

    def test_post_then_get(self, store: FileStore):
        handler = FileHandler(store)
        handler(files_request("POST", "/round", b"\x00binary\xff"))

        assert handler(files_request("GET", "/round")).body == b"\x00binary\xff"

    def test_post_invalid_name_is_500(self, store: FileStore):
        assert FileHandler(store)(files_request("POST", "/../x", b"x")).status == 500

    def test_post_write_failure_is_500(self, store: FileStore):
        assert FileHandler(store)(files_request("POST", "/missing/dir", b"x")).status == 500

    @pytest.mark.parametrize("method", ["PUT", "DELETE", "HEAD"])
    def test_other_methods_404(self, store: FileStore, tmp_path, method: str):
        (tmp_path / "a").write_bytes(b"1")

        assert FileHandler(store)(files_request(method, "/a")).status == 404
        assert (tmp_path / "a").read_bytes() == b"1"

    @pytest.mark.parametrize("method", ["GET", "POST"])
    def test_no_store_is_404(self, method: str):
        assert FileHandler(None)(files_request(method, "/a", b"x")).status == 404
