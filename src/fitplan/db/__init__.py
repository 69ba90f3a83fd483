"""Database utilities exposed for external runtimes."""

from .repo import PersistenceError, close_db, get_session, init_db

__all__ = ["PersistenceError", "close_db", "get_session", "init_db"]
