"""Tests for legiswatch.storage — schema, connection, and constraints."""

from __future__ import annotations

import sqlite3

import pytest

from legiswatch.storage.connection import get_connection
from legiswatch.storage.schema import init_db

EXPECTED_TABLES = {"legislation_updates", "source_runs", "source_state"}

EXPECTED_INDEXES = {
    "idx_updates_cross_ref_key",
    "idx_updates_source",
    "idx_updates_ingested_at",
    "idx_updates_jurisdiction_state",
    "idx_source_runs_run_id",
    "idx_source_runs_source_id",
    "idx_source_runs_started_at",
}


@pytest.fixture()
def initialized_db(tmp_path):
    db_path = str(tmp_path / "test.db")
    init_db(db_path)
    return db_path


def _insert_update(conn: sqlite3.Connection, *, update_id: str = "u-1", **overrides) -> None:
    row = {
        "item_type": "bill",
        "jurisdiction_level": "state",
        "severity": "medium",
    }
    row.update(overrides)
    conn.execute(
        "INSERT INTO legislation_updates "
        "(id, source, source_key, item_type, jurisdiction_level, title, topics, "
        "severity, cfr_references, raw_data, content_hash, ingested_at) "
        "VALUES (?, 'legiscan', 'k', ?, ?, 'Title', '[\"eviction\"]', ?, '[]', '{}', 'h', "
        "'2025-01-01T00:00:00+00:00')",
        (update_id, row["item_type"], row["jurisdiction_level"], row["severity"]),
    )


def test_init_db_creates_all_tables(initialized_db):
    with get_connection(initialized_db) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    assert EXPECTED_TABLES <= {r["name"] for r in rows}


def test_init_db_creates_all_indexes(initialized_db):
    with get_connection(initialized_db) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='index'").fetchall()
    assert EXPECTED_INDEXES <= {r["name"] for r in rows}


def test_init_db_is_idempotent(initialized_db):
    init_db(initialized_db)
    with get_connection(initialized_db) as conn:
        _insert_update(conn)
    init_db(initialized_db)
    with get_connection(initialized_db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM legislation_updates").fetchone()[0] == 1


def test_connection_uses_wal_and_row_factory(initialized_db):
    with get_connection(initialized_db) as conn:
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"
        assert conn.row_factory is sqlite3.Row


def test_connection_rolls_back_on_error(initialized_db):
    with pytest.raises(RuntimeError):
        with get_connection(initialized_db) as conn:
            _insert_update(conn)
            raise RuntimeError("boom")

    with get_connection(initialized_db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM legislation_updates").fetchone()[0] == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"item_type": "memo"},
        {"jurisdiction_level": "county"},
        {"severity": "urgent"},
    ],
)
def test_check_constraints_reject_bad_values(initialized_db, overrides):
    with pytest.raises(sqlite3.IntegrityError):
        with get_connection(initialized_db) as conn:
            _insert_update(conn, **overrides)


def test_severity_may_be_null(initialized_db):
    with get_connection(initialized_db) as conn:
        _insert_update(conn, severity=None)
        assert conn.execute("SELECT severity FROM legislation_updates").fetchone()[0] is None


def test_source_runs_status_constraint(initialized_db):
    with pytest.raises(sqlite3.IntegrityError):
        with get_connection(initialized_db) as conn:
            conn.execute(
                "INSERT INTO source_runs (id, run_id, source_id, started_at, finished_at, status) "
                "VALUES ('r1', 'run', 'ecfr', 'a', 'b', 'error')"
            )


def test_readonly_connection_rejects_writes(initialized_db):
    with pytest.raises(sqlite3.OperationalError):
        with get_connection(initialized_db, readonly=True) as conn:
            _insert_update(conn)
    with get_connection(initialized_db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM legislation_updates").fetchone()[0] == 0


def test_readonly_connection_does_not_create_missing_file(tmp_path):
    db_path = tmp_path / "missing.db"
    with pytest.raises(sqlite3.OperationalError):
        with get_connection(str(db_path), readonly=True):
            pass
    assert not db_path.exists()
