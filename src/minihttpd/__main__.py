"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    python -m minihttpd
    python -m minihttpd --directory /tmp/files
    python -m minihttpd --port 8080 --log-level DEBUG
    minihttpd --max-connections 100 --idle-timeout 30

Configuration is read from MINIHTTPD_* environment variables first, then
overridden by any flags given here (see ServerConfig.from_env).

=============================================================================
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from . import __version__
from .server import HTTPServer
from .config import ServerConfig


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Command-line options; every default is None so the environment applies."""
    parser = argparse.ArgumentParser(
        prog="minihttpd",
        description="Minimal HTTP/1.1 server with echo, user-agent and file routes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m minihttpd                              # 0.0.0.0:4221, no file store
  python -m minihttpd --directory /tmp/files       # Enable GET/POST /files/{name}
  python -m minihttpd --port 8080 --host 127.0.0.1 # Custom address
  python -m minihttpd --max-connections 64         # Cap concurrent connections
  python -m minihttpd --lenient                    # Route malformed requests best-effort
        """
    )

    parser.add_argument(
        "--directory", "-d",
        default=None,
        help="Root directory for /files/{name} (file routes answer 404 without it)"
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 4221)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--max-connections",
        type=int,
        default=None,
        help="Maximum simultaneous connections (default: unbounded)"
    )

    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=None,
        help="Close connections silent for this many seconds (default: never)"
    )

    parser.add_argument(
        "--buffer-size",
        type=int,
        default=None,
        help="Bytes per socket read (default: 1024)"
    )

    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Route malformed requests best-effort instead of answering 400"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttpd {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """
    Merge parsed flags over the environment.

    Raises:
        ValueError: If an environment variable holds a bad number.
    """
    return ServerConfig.from_env(
        host=args.host,
        port=args.port,
        directory=args.directory,
        log_level=args.log_level,
        max_connections=args.max_connections,
        idle_timeout=args.idle_timeout,
        buffer_size=args.buffer_size,
        strict_parsing=False if args.lenient else None,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Process exit code: 0 after a clean shutdown, 1 if startup failed.
    """
    args = build_parser().parse_args(argv)

    try:
        server = HTTPServer(build_config(args))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
