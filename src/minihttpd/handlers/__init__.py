"""
Request handlers.

    basic  - root, echo and user-agent
    files  - FileStore and the /files handler
"""

from .basic import root, echo, user_agent
from .files import (
    FileHandler,
    FileStore,
    FileStoreError,
    ResourceNotFound,
    InvalidResourceName,
    StoreWriteError,
)

__all__ = [
    "root",
    "echo",
    "user_agent",
    "FileHandler",
    "FileStore",
    "FileStoreError",
    "ResourceNotFound",
    "InvalidResourceName",
    "StoreWriteError",
]
