"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

One immutable ServerConfig is built at startup and handed to the server,
the listener and the router. Nothing reads configuration from module
globals.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line arguments                                         │
    │      └── python -m minihttpd --port 3000                            │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── MINIHTTPD_PORT=3000 python -m minihttpd                    │
    │                                                                     │
    │   3. Default values (in this dataclass)                             │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the HTTP server.

    Frozen: use replace() to derive a modified copy.

        config = ServerConfig(directory="/tmp/files")
        debug = config.replace(log_level="DEBUG")
    """

    # NETWORK SETTINGS

    host: str = "0.0.0.0"
    """
    The IP address to bind to.
    - "0.0.0.0" - All network interfaces
    - "127.0.0.1" - Localhost only
    """

    port: int = 4221
    """The port number to listen on (0 lets the OS pick one)."""

    backlog: int = 128
    """Maximum number of queued connections waiting for accept()."""

    buffer_size: int = 1024
    """Bytes requested per recv() call."""

    # HTTP SETTINGS

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """
    Largest accepted request (headers + body) in bytes.
    Bigger requests get 413 Payload Too Large and the connection closes.
    """

    idle_timeout: Optional[float] = None
    """
    Seconds a connection may sit silent before it is closed.
    None = wait forever.
    """

    strict_parsing: bool = True
    """
    Answer malformed requests with 400 Bad Request and close.
    False routes them best-effort (empty method/path → 404).
    """

    # CONCURRENCY

    max_connections: Optional[int] = None
    """
    Cap on simultaneously served connections.
    None = unbounded (one thread per connection, no admission control).
    """

    # FILE STORE

    directory: Optional[str] = None
    """
    Root directory for /files/{name}.
    None disables the file routes (they answer 404).
    """

    # LOGGING

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    server_name: str = "minihttpd/1.0"
    """Identifies the server in log lines. Not sent on the wire."""

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        MINIHTTPD_HOST             Server host (default: 0.0.0.0)
        MINIHTTPD_PORT             Server port (default: 4221)
        MINIHTTPD_DIRECTORY        File store root (default: None)
        MINIHTTPD_LOG_LEVEL        Logging level (default: INFO)
        MINIHTTPD_MAX_CONNECTIONS  Connection cap (default: unbounded)

        =====================================================================

        Keyword overrides win over the environment; overrides that are
        None are ignored, so argparse results can be passed straight in.

        Raises:
            ValueError: If a numeric variable is not a number.
        """
        values = {}

        if "MINIHTTPD_HOST" in os.environ:
            values["host"] = os.environ["MINIHTTPD_HOST"]
        if "MINIHTTPD_PORT" in os.environ:
            values["port"] = int(os.environ["MINIHTTPD_PORT"])
        if "MINIHTTPD_DIRECTORY" in os.environ:
            values["directory"] = os.environ["MINIHTTPD_DIRECTORY"]
        if "MINIHTTPD_LOG_LEVEL" in os.environ:
            values["log_level"] = os.environ["MINIHTTPD_LOG_LEVEL"].upper()
        if "MINIHTTPD_MAX_CONNECTIONS" in os.environ:
            values["max_connections"] = int(os.environ["MINIHTTPD_MAX_CONNECTIONS"])

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def replace(self, **changes) -> "ServerConfig":
        """Return a copy with the given fields changed."""
        return replace(self, **changes)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called at startup so a bad value fails immediately rather than on
        the first request.

        Raises:
            ValueError: Describing the first invalid field.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 64:
            raise ValueError("buffer_size must be >= 64")

        if self.max_request_size < self.buffer_size:
            raise ValueError("max_request_size must be >= buffer_size")

        if self.idle_timeout is not None and self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be > 0")

        if self.max_connections is not None and self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.directory is not None and not Path(self.directory).is_dir():
            raise ValueError(f"directory does not exist: {self.directory}")
