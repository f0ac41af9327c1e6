"""
=============================================================================
CONTENT-ENCODING NEGOTIATION (gzip)
=============================================================================

Two halves of response compression live here:

    ┌───────────────────────────────────────────────────────────────────┐
    │                    GZIP NEGOTIATION FLOW                          │
    ├───────────────────────────────────────────────────────────────────┤
    │                                                                   │
    │   Request header                      Handler                     │
    │   Accept-Encoding: deflate, gzip ──►  accepts_gzip() == True      │
    │                                        │                          │
    │                                        ▼                          │
    │                                   HTTPResponse(gzip=True)         │
    │                                        │                          │
    │                                        ▼                          │
    │   Serializer                      gzip_body(body)                 │
    │                                        │                          │
    │                                        ▼                          │
    │   Content-Encoding: gzip          compressed bytes on the wire    │
    │                                                                   │
    └───────────────────────────────────────────────────────────────────┘

Only the literal token "gzip" is honored. Quality values are not parsed, so
"gzip;q=0.5" does NOT negotiate gzip, and deflate/br are ignored.

=============================================================================
"""

import gzip
import logging
import zlib
from typing import Optional


logger = logging.getLogger(__name__)


GZIP_TOKEN = "gzip"


def accepts_gzip(accept_encoding: Optional[str]) -> bool:
    """
    Check whether an Accept-Encoding header value allows gzip.

    The header is split on commas and each token is trimmed; the client
    supports gzip iff one token is exactly "gzip".

    Args:
        accept_encoding: Raw header value (None or "" when absent).

    Returns:
        True if the client declared gzip support.

    Example:
        accepts_gzip("deflate, gzip")   # True
        accepts_gzip("gzip-ish")        # False
    """
    if not accept_encoding:
        return False
    return any(token.strip() == GZIP_TOKEN for token in accept_encoding.split(","))


def gzip_body(body: bytes, level: int = 9) -> Optional[bytes]:
    """
    Compress a response body with gzip.

    Compression failure should never happen for in-memory bytes, but if it
    does the caller must fall back to the identity encoding, so failures are
    reported as None instead of raised.

    Args:
        body: Uncompressed body bytes.
        level: gzip compression level (1-9).

    Returns:
        Compressed bytes, or None if compression failed.
    """
    try:
        return gzip.compress(body, compresslevel=level)
    except (zlib.error, ValueError, TypeError) as e:
        logger.error(f"gzip compression failed, sending identity body: {e}")
        return None
