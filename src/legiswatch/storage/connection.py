"""SQLite connection management."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Generator

_BUSY_TIMEOUT_SECONDS = 10.0


@contextmanager
def get_connection(
    database_path: str,
    *,
    readonly: bool = False,
    timeout: float = _BUSY_TIMEOUT_SECONDS,
) -> Generator[sqlite3.Connection, None, None]:
    """Open a SQLite connection to the updates database.

    Read-write connections (the ingest side) run in WAL mode with foreign
    keys on, commit on clean exit and roll back on exception.

    ``readonly=True`` (the web side) opens the file in URI ``mode=ro`` with
    ``query_only`` set, so the ingest run stays the only writer. A missing
    database file raises ``sqlite3.OperationalError`` instead of being
    created.

    The connection is always closed.
    """
    if readonly:
        conn = sqlite3.connect(f"file:{database_path}?mode=ro", uri=True, timeout=timeout)
        conn.execute("PRAGMA query_only=ON")
    else:
        conn = sqlite3.connect(database_path, timeout=timeout)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        if not readonly:
            conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()
