"""
Middleware: code that runs between parsing a request and routing it.

    MiddlewarePipeline.wrap(router.handle)
        └── LoggingMiddleware  → access log line per request
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    # Base classes
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    # Built-in middleware
    "LoggingMiddleware",
    "RequestLog",
]
