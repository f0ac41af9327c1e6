"""
=============================================================================
FILE STORE AND /files HANDLER
=============================================================================

The /files routes treat a directory as a byte-oriented key-value store:

    GET  /files/{name}   → 200 application/octet-stream <contents>
                           404 if missing, unreadable or no directory
    POST /files/{name}   → 201, request body stored as the full contents
                           500 if the write fails or the name is rejected
                           404 if no directory is configured
    other methods        → 404

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

The filename comes straight from the URL, so it is resolved and checked
against the store root before any I/O:

    root    = /srv/files
    "a.txt"            → /srv/files/a.txt        OK
    "../etc/passwd"    → /srv/etc/passwd         REJECTED (outside root)
    "/etc/passwd"      → absolute                REJECTED
    ""                 → the root directory      REJECTED

=============================================================================
CONCURRENCY
=============================================================================

Each resolved path gets its own threading.Lock, so a GET never observes a
half-written file from a concurrent POST to the same name. Different names
never contend. A lock lives only while some request holds or waits for
it, so the lock table stays as small as the number of busy names. Writes are still not atomic with respect to a crash: a
process dying mid-write can leave a partial file.

=============================================================================
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok, created, not_found, internal_error
from ..http.content_types import ContentType


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class FileStoreError(Exception):
    """Base class for file store failures."""

    def __init__(self, name: str, message: str):
        super().__init__(f"{message}: {name!r}")
        self.name = name


class ResourceNotFound(FileStoreError):
    """The named resource does not exist or cannot be read."""

    def __init__(self, name: str, message: str = "Resource not found"):
        super().__init__(name, message)


class InvalidResourceName(FileStoreError):
    """The name is empty, absolute, or escapes the store root."""

    def __init__(self, name: str, message: str = "Invalid resource name"):
        super().__init__(name, message)


class StoreWriteError(FileStoreError):
    """Writing the resource failed."""

    def __init__(self, name: str, message: str = "Write failed"):
        super().__init__(name, message)


# =============================================================================
# FILE STORE
# =============================================================================

@dataclass
class _PathLock:
    """A per-path lock plus the number of callers holding or awaiting it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class FileStore:
    """
    Files directly under one root directory, keyed by name.

    Usage:
        store = FileStore("/tmp/data")
        store.write("notes.txt", b"hello")
        store.read("notes.txt")   # b"hello"
    """

    def __init__(self, root: Union[str, Path]):
        # Resolve once so the containment check compares canonical paths
        self.root = Path(root).resolve()
        self._locks: Dict[Path, _PathLock] = {}
        self._locks_guard = threading.Lock()

    def resolve(self, name: str) -> Path:
        """
        Map a resource name to a path inside the root.

        Raises:
            InvalidResourceName: empty, absolute, NUL-containing, or
                resolving outside (or onto) the root.
        """
        if not name or "\x00" in name:
            raise InvalidResourceName(name)
        if Path(name).is_absolute():
            raise InvalidResourceName(name, "Absolute resource name")

        path = (self.root / name).resolve()
        try:
            path.relative_to(self.root)
        except ValueError:
            logger.warning(f"Path traversal attempt: {name!r}")
            raise InvalidResourceName(name, "Resource name escapes store root") from None

        if path == self.root:
            raise InvalidResourceName(name)
        return path

    @contextmanager
    def _locked(self, path: Path) -> Iterator[None]:
        """Hold the lock for path; drop its table entry once nobody uses it."""
        with self._locks_guard:
            entry = self._locks.get(path)
            if entry is None:
                entry = self._locks[path] = _PathLock()
            entry.users += 1

        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[path]

    def read(self, name: str) -> bytes:
        """
        Return the full contents of a resource.

        Raises:
            InvalidResourceName: see resolve().
            ResourceNotFound: missing, a directory, or unreadable.
        """
        path = self.resolve(name)
        with self._locked(path):
            try:
                return path.read_bytes()
            except OSError as e:
                raise ResourceNotFound(name) from e

    def write(self, name: str, data: bytes) -> None:
        """
        Replace the contents of a resource (created if missing).

        Raises:
            InvalidResourceName: see resolve().
            StoreWriteError: any OSError while writing.
        """
        path = self.resolve(name)
        with self._locked(path):
            try:
                path.write_bytes(data)
            except OSError as e:
                raise StoreWriteError(name, f"Write failed ({e.strerror})") from e

    def exists(self, name: str) -> bool:
        try:
            return self.resolve(name).is_file()
        except InvalidResourceName:
            return False


# =============================================================================
# HANDLER
# =============================================================================

def filename_from(remainder: str) -> str:
    """
    Filename from the text following "/files" in the path.

        "/notes.txt" → "notes.txt"
        ""           → ""    (path was exactly "/files")
        "notes.txt"  → ""    (path "/filesnotes.txt" lacks the separator)
    """
    if remainder.startswith("/"):
        return remainder[1:]
    return ""


class FileHandler:
    """
    Handler for /files/{name}.

    Callable, so it registers on the Router like a plain function:

        router.add_route("/files", FileHandler(store), param="filename")

    A store of None means no directory was configured: every request 404s.
    """

    def __init__(self, store: Optional[FileStore]):
        self.store = store

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        if self.store is None:
            return not_found()

        name = filename_from(request.path_params.get("filename", ""))

        if request.method == "GET":
            return self.get(name)
        if request.method == "POST":
            return self.post(name, request.body)
        return not_found()

    def get(self, name: str) -> HTTPResponse:
        """Serve a stored file. Never gzip-compressed."""
        try:
            data = self.store.read(name)
        except FileStoreError as e:
            logger.debug(f"GET /files failed: {e}")
            return not_found()
        return ok(data, ContentType.APPLICATION_OCTET_STREAM)

    def post(self, name: str, body: bytes) -> HTTPResponse:
        """Store the body under name, overwriting any previous contents."""
        try:
            self.store.write(name, body)
        except FileStoreError as e:
            logger.error(f"POST /files failed: {e}")
            return internal_error()
        logger.debug(f"Stored {len(body)} bytes as {name!r}")
        return created()
