"""Database schema definition and initialization."""

from __future__ import annotations

import logging

from legiswatch.storage.connection import get_connection

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """\
-- Normalized legislative updates accepted from source adapters
CREATE TABLE IF NOT EXISTS legislation_updates (
    id                  TEXT PRIMARY KEY,
    source              TEXT NOT NULL,
    source_key          TEXT NOT NULL,
    cross_ref_key       TEXT,
    item_type           TEXT NOT NULL CHECK (item_type IN (
                            'bill', 'regulation', 'case', 'notice', 'cfr_change'
                        )),
    jurisdiction_level  TEXT NOT NULL CHECK (jurisdiction_level IN (
                            'federal', 'state', 'tribal', 'local'
                        )),
    jurisdiction_state  TEXT,
    jurisdiction_tribe  TEXT,
    title               TEXT NOT NULL,
    summary             TEXT,
    status              TEXT,
    introduced_date     TEXT,
    effective_date      TEXT,
    source_updated_at   TEXT,
    published_at        TEXT,
    url                 TEXT,
    pdf_url             TEXT,
    topics              TEXT NOT NULL,          -- JSON array
    severity            TEXT CHECK (severity IS NULL OR severity IN (
                            'low', 'medium', 'high', 'critical'
                        )),
    cfr_references      TEXT NOT NULL,          -- JSON array
    raw_data            TEXT NOT NULL,          -- JSON (source payload)
    content_hash        TEXT NOT NULL,
    ingested_at         TEXT NOT NULL
);

-- One row per source per ingest run
CREATE TABLE IF NOT EXISTS source_runs (
    id              TEXT PRIMARY KEY,
    run_id          TEXT NOT NULL,
    source_id       TEXT NOT NULL,
    started_at      TEXT NOT NULL,
    finished_at     TEXT NOT NULL,
    status          TEXT NOT NULL CHECK (status IN ('success', 'partial', 'failed')),
    items_fetched   INTEGER NOT NULL DEFAULT 0,
    new_items       INTEGER NOT NULL DEFAULT 0,
    duplicates      INTEGER NOT NULL DEFAULT 0,
    cursor_before   TEXT,
    cursor_after    TEXT,
    errors          TEXT NOT NULL DEFAULT '[]'  -- JSON array
);

-- Last-run bookkeeping and the since-cursor per source
CREATE TABLE IF NOT EXISTS source_state (
    source_id       TEXT PRIMARY KEY,
    last_run_at     TEXT,
    last_run_status TEXT CHECK (last_run_status IS NULL OR last_run_status IN (
                        'success', 'partial', 'failed'
                    )),
    last_seen_date  TEXT,
    last_error      TEXT
);

-- Indexes: legislation_updates
CREATE INDEX IF NOT EXISTS idx_updates_cross_ref_key ON legislation_updates(cross_ref_key);
CREATE INDEX IF NOT EXISTS idx_updates_source ON legislation_updates(source);
CREATE INDEX IF NOT EXISTS idx_updates_ingested_at ON legislation_updates(ingested_at);
CREATE INDEX IF NOT EXISTS idx_updates_jurisdiction_state ON legislation_updates(jurisdiction_state);

-- Indexes: source_runs
CREATE INDEX IF NOT EXISTS idx_source_runs_run_id ON source_runs(run_id);
CREATE INDEX IF NOT EXISTS idx_source_runs_source_id ON source_runs(source_id);
CREATE INDEX IF NOT EXISTS idx_source_runs_started_at ON source_runs(started_at);
"""


def init_db(database_path: str) -> None:
    """Create all tables and indexes if they do not already exist."""
    with get_connection(database_path) as conn:
        conn.executescript(_SCHEMA_SQL)
    logger.info("Database initialized at %s", database_path)
