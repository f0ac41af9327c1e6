"""
Content types the server can label a response body with.

There is no MIME lookup by file extension: file downloads are always served
as application/octet-stream, so the set of content types is a closed enum
rather than a mapping.
"""

from enum import Enum


class ContentType(Enum):
    """
    Response content types.

    NONE means "emit no Content-Type header at all", which is what the
    root route and every error response use.
    """

    NONE = ""
    TEXT_PLAIN = "text/plain"
    APPLICATION_OCTET_STREAM = "application/octet-stream"
    APPLICATION_JSON = "application/json"
    TEXT_HTML = "text/html"

    @property
    def header_value(self) -> str:
        """Value for the Content-Type header ("" for NONE)."""
        return self.value

    def __str__(self) -> str:
        return self.value
