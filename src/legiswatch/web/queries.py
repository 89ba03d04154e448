"""Read-only query functions for the web API."""

from __future__ import annotations

import json
import sqlite3

from legiswatch.sources.adapter import SourceAdapter
from legiswatch.storage.connection import get_connection

_SUMMARY_COLUMNS = (
    "id, source, source_key, cross_ref_key, item_type, jurisdiction_level, "
    "jurisdiction_state, title, summary, status, published_at, url, topics, "
    "severity, ingested_at"
)


def _update_summary(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "source": row["source"],
        "source_key": row["source_key"],
        "cross_ref_key": row["cross_ref_key"],
        "item_type": row["item_type"],
        "jurisdiction_level": row["jurisdiction_level"],
        "jurisdiction_state": row["jurisdiction_state"],
        "title": row["title"],
        "summary": row["summary"],
        "status": row["status"],
        "published_at": row["published_at"],
        "url": row["url"],
        "topics": json.loads(row["topics"]),
        "severity": row["severity"],
        "ingested_at": row["ingested_at"],
    }


# ---------------------------------------------------------------------------
# list_updates
# ---------------------------------------------------------------------------
def list_updates(
    database_path: str,
    *,
    filters: dict | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[dict], int]:
    """Return a paginated, filtered list of stored updates, newest first."""
    filters = filters or {}
    offset = (page - 1) * per_page

    conditions: list[str] = []
    params: list[object] = []

    if "source" in filters:
        conditions.append("source = ?")
        params.append(filters["source"])

    if "topic" in filters:
        conditions.append("EXISTS (SELECT 1 FROM json_each(topics) WHERE value = ?)")
        params.append(filters["topic"])

    if "state" in filters:
        conditions.append("jurisdiction_state = ?")
        params.append(filters["state"].upper())

    if "severity" in filters:
        conditions.append("severity = ?")
        params.append(filters["severity"])

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    with get_connection(database_path, readonly=True) as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM legislation_updates {where_clause}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT {_SUMMARY_COLUMNS} FROM legislation_updates {where_clause} "
            f"ORDER BY ingested_at DESC, id LIMIT ? OFFSET ?",
            [*params, per_page, offset],
        ).fetchall()

    return [_update_summary(r) for r in rows], total


# ---------------------------------------------------------------------------
# get_update_by_id
# ---------------------------------------------------------------------------
def get_update_by_id(database_path: str, update_id: str) -> dict | None:
    """Return one stored update with its raw payload, or None."""
    with get_connection(database_path, readonly=True) as conn:
        row = conn.execute(
            "SELECT * FROM legislation_updates WHERE id = ?", (update_id,)
        ).fetchone()

    if row is None:
        return None

    update = _update_summary(row)
    update.update({
        "jurisdiction_tribe": row["jurisdiction_tribe"],
        "introduced_date": row["introduced_date"],
        "effective_date": row["effective_date"],
        "source_updated_at": row["source_updated_at"],
        "pdf_url": row["pdf_url"],
        "cfr_references": json.loads(row["cfr_references"]),
        "raw_data": json.loads(row["raw_data"]),
        "content_hash": row["content_hash"],
    })
    return update


# ---------------------------------------------------------------------------
# list_sources
# ---------------------------------------------------------------------------
def list_sources(database_path: str, adapters: list[SourceAdapter]) -> list[dict]:
    """Return run state per source, merged with adapter metadata.

    Adapters that never ran are included with empty state.
    """
    with get_connection(database_path, readonly=True) as conn:
        rows = conn.execute("SELECT * FROM source_state ORDER BY source_id").fetchall()

    states = {r["source_id"]: dict(r) for r in rows}
    by_id = {a.source_id: a for a in adapters}

    sources = []
    for source_id in sorted(set(states) | set(by_id)):
        entry = {"source_id": source_id, **states.get(source_id, {})}
        adapter = by_id.get(source_id)
        if adapter is not None:
            entry["name"] = adapter.name
            entry["kind"] = adapter.kind
            entry["default_poll_interval"] = adapter.default_poll_interval
        sources.append(entry)
    return sources


# ---------------------------------------------------------------------------
# list_source_runs
# ---------------------------------------------------------------------------
def list_source_runs(
    database_path: str,
    source: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[dict], int]:
    """Return a paginated list of source runs, newest first."""
    offset = (page - 1) * per_page
    where_clause = "WHERE source_id = ?" if source else ""
    params: list[object] = [source] if source else []

    with get_connection(database_path, readonly=True) as conn:
        total = conn.execute(
            f"SELECT COUNT(*) FROM source_runs {where_clause}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM source_runs {where_clause} "
            f"ORDER BY started_at DESC LIMIT ? OFFSET ?",
            [*params, per_page, offset],
        ).fetchall()

    runs = []
    for r in rows:
        run = dict(r)
        run["errors"] = json.loads(r["errors"])
        runs.append(run)
    return runs, total
