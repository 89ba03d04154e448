"""Storage layer — SQLite database access and schema management."""

from legiswatch.storage.connection import get_connection
from legiswatch.storage.schema import init_db

__all__ = ["get_connection", "init_db"]
