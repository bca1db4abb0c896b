"""
core.db: Database access layer.

Re-exports the connection helpers and the video store so callers can use
``from core.db import VideoStore``.
"""

from core.db.connection import get_connection, init_db  # noqa: F401
from core.db.videos import VideoStore, VideoUnitOfWork  # noqa: F401

__all__ = [
    # connection
    "get_connection",
    "init_db",
    # videos
    "VideoStore",
    "VideoUnitOfWork",
]
