"""Database layer - declarative base and engine/session management."""

from gst_kernel.db.base import Base, UUIDString
from gst_kernel.db.engine import create_tables, get_engine, get_session_factory, session_scope

__all__ = [
    "Base",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
