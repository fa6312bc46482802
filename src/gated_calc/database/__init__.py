"""Database engine, sessions and schema management."""

from .connection import db_manager, get_session_factory

__all__ = ["db_manager", "get_session_factory"]
