"""Database layer."""

from proofage.db.session import (
    bounded,
    close_db,
    get_async_session,
    get_session_dependency,
    init_db,
)

__all__ = [
    "bounded",
    "close_db",
    "get_async_session",
    "get_session_dependency",
    "init_db",
]
