"""Ingest run — fetch every enabled source, dedup against stored updates, persist."""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from legiswatch.config import Config
from legiswatch.sources.models import (
    TRIBAL_TOPICS,
    NormalizedLegislationItem,
    SourceFetchParams,
)
from legiswatch.sources.registry import get_adapter
from legiswatch.storage.connection import get_connection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceConfig:
    """One entry of the sources config file."""

    id: str
    enabled: bool = True
    states: list[str] | None = None
    topics: list[str] | None = None
    include_tribal: bool = False


@dataclass(frozen=True)
class IngestOptions:
    """Per-run overrides applied on top of the sources config."""

    source_ids: list[str] | None = None
    states: list[str] | None = None
    topics: list[str] | None = None
    since: str | None = None
    include_tribal: bool | None = None
    dry_run: bool = False


TRIBAL_MONITORING = IngestOptions(
    source_ids=["federalRegister", "ecfr", "hudOnap", "utahGlen"],
    topics=["nahasda_core", "ihbg", "tribal_adjacent"],
    include_tribal=True,
)

LANDLORD_TENANT_MONITORING = IngestOptions(
    source_ids=["legiscan", "pluralPolicy", "federalRegister", "courtListener"],
    topics=["landlord_tenant", "fair_housing", "security_deposit", "eviction"],
    include_tribal=False,
)


@dataclass
class SourceRunResult:
    """Outcome of one source within an ingest run."""

    source_id: str
    status: str = "success"  # success | partial | failed
    items_fetched: int = 0
    new_items: int = 0
    duplicates: int = 0
    errors: list[str] = field(default_factory=list)
    cursor_before: str | None = None
    cursor_after: str | None = None


@dataclass
class IngestRunResult:
    """Aggregate outcome of an ingest run."""

    run_id: str
    started_at: str
    finished_at: str | None = None
    status: str = "success"
    sources: list[SourceRunResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def sources_processed(self) -> int:
        return sum(1 for s in self.sources if s.status != "failed")

    @property
    def items_fetched(self) -> int:
        return sum(s.items_fetched for s in self.sources)

    @property
    def new_items(self) -> int:
        return sum(s.new_items for s in self.sources)

    @property
    def duplicates(self) -> int:
        return sum(s.duplicates for s in self.sources)


def load_sources_config(path: str) -> list[SourceConfig]:
    """Read the sources JSON file. Raises OSError or ValueError on a bad file."""
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Sources file {path} must contain a JSON object")

    entries = data.get("sources", [])
    if not isinstance(entries, list):
        raise ValueError(f"\"sources\" in {path} must be a list")

    sources: list[SourceConfig] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError(f"Source entry in {path} must be an object: {entry!r}")
        if not entry.get("id"):
            raise ValueError(f"Source entry without an id in {path}: {entry!r}")
        sources.append(
            SourceConfig(
                id=entry["id"],
                enabled=entry.get("enabled", True),
                states=entry.get("states") or None,
                topics=entry.get("topics") or None,
                include_tribal=bool(entry.get("include_tribal", False)),
            )
        )
    return sources


def compute_content_hash(item: NormalizedLegislationItem) -> str:
    """SHA-256 over title, summary, and status; first 32 hex characters."""
    content = f"{item.title}|{item.summary or ''}|{item.status or ''}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:32]


def build_fetch_params(
    source: SourceConfig, since: str | None, options: IngestOptions
) -> SourceFetchParams:
    """Merge a source's config, its stored cursor, and the run's overrides."""
    topics = options.topics or source.topics
    if options.include_tribal is not None:
        include_tribal = options.include_tribal
    else:
        include_tribal = source.include_tribal or any(t in TRIBAL_TOPICS for t in topics or [])
    return SourceFetchParams(
        states=options.states or source.states,
        since=options.since or since,
        topics=topics,
        include_tribal=include_tribal,
    )


def _get_last_seen_date(conn: sqlite3.Connection, source_id: str) -> str | None:
    row = conn.execute(
        "SELECT last_seen_date FROM source_state WHERE source_id = ?", (source_id,)
    ).fetchone()
    return row["last_seen_date"] if row else None


def _is_duplicate(conn: sqlite3.Connection, item: NormalizedLegislationItem) -> bool:
    """Whether an update with the same cross-reference key is already stored.

    Items without a cross-reference key are matched on (source, source_key).
    """
    if item.cross_ref_key:
        row = conn.execute(
            "SELECT 1 FROM legislation_updates WHERE cross_ref_key = ? LIMIT 1",
            (item.cross_ref_key,),
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT 1 FROM legislation_updates WHERE source = ? AND source_key = ? LIMIT 1",
            (item.source, item.source_key),
        ).fetchone()
    return row is not None


def persist_update(conn: sqlite3.Connection, item: NormalizedLegislationItem) -> str:
    """Insert a normalized item into legislation_updates. Returns the new row id."""
    update_id = str(uuid.uuid4())
    conn.execute(
        "INSERT INTO legislation_updates "
        "(id, source, source_key, cross_ref_key, item_type, jurisdiction_level, "
        "jurisdiction_state, jurisdiction_tribe, title, summary, status, "
        "introduced_date, effective_date, source_updated_at, published_at, url, "
        "pdf_url, topics, severity, cfr_references, raw_data, content_hash, ingested_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            update_id,
            item.source,
            item.source_key,
            item.cross_ref_key,
            item.item_type,
            item.jurisdiction.level,
            item.jurisdiction.state,
            item.jurisdiction.tribe,
            item.title,
            item.summary,
            item.status,
            item.introduced_date,
            item.effective_date,
            item.updated_at,
            item.published_at,
            item.url,
            item.pdf_url,
            json.dumps(list(item.topics)),
            item.severity,
            json.dumps([asdict(ref) for ref in item.cfr_references]),
            json.dumps(item.raw, default=str),
            compute_content_hash(item),
            datetime.now(timezone.utc).isoformat(),
        ),
    )
    return update_id


def _record_source_outcome(
    database_path: str,
    run_id: str,
    started_at: str,
    result: SourceRunResult,
) -> None:
    """Upsert source_state and insert the source_runs row for one source."""
    finished_at = datetime.now(timezone.utc).isoformat()
    last_error = result.errors[-1] if result.errors else None
    with get_connection(database_path) as conn:
        conn.execute(
            "INSERT INTO source_state "
            "(source_id, last_run_at, last_run_status, last_seen_date, last_error) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(source_id) DO UPDATE SET "
            "last_run_at = excluded.last_run_at, "
            "last_run_status = excluded.last_run_status, "
            "last_seen_date = excluded.last_seen_date, "
            "last_error = excluded.last_error",
            (result.source_id, finished_at, result.status, result.cursor_after, last_error),
        )
        conn.execute(
            "INSERT INTO source_runs "
            "(id, run_id, source_id, started_at, finished_at, status, items_fetched, "
            "new_items, duplicates, cursor_before, cursor_after, errors) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(uuid.uuid4()),
                run_id,
                result.source_id,
                started_at,
                finished_at,
                result.status,
                result.items_fetched,
                result.new_items,
                result.duplicates,
                result.cursor_before,
                result.cursor_after,
                json.dumps(result.errors),
            ),
        )


def _run_source(
    config: Config, source: SourceConfig, options: IngestOptions
) -> SourceRunResult:
    """Fetch one source and store its new items. Never raises."""
    result = SourceRunResult(source_id=source.id)
    run_started = datetime.now(timezone.utc)

    try:
        with get_connection(config.database_path) as conn:
            result.cursor_before = _get_last_seen_date(conn, source.id)
    except sqlite3.Error as exc:
        logger.exception("Could not read cursor for source '%s'", source.id)
        result.status = "failed"
        result.errors.append(f"Source {source.id} failed: {exc}")
        return result
    result.cursor_after = result.cursor_before

    adapter = get_adapter(source.id)
    if adapter is None:
        result.status = "failed"
        result.errors.append(f"No adapter found for source: {source.id}")
        logger.warning("No adapter registered for source '%s'", source.id)
        return result

    try:
        if not adapter.is_available():
            result.status = "failed"
            result.errors.append("Source not available")
            logger.info("Skipping %s: not available (missing API key?)", source.id)
            return result

        params = build_fetch_params(source, result.cursor_before, options)
        logger.info("Fetching %s with %s", source.id, params)
        fetched = adapter.fetch(params)
    except Exception as exc:
        logger.exception("Source '%s' fetch failed", source.id)
        result.status = "failed"
        result.errors.append(f"Source {source.id} failed: {exc}")
        return result

    result.items_fetched = len(fetched.items)
    result.errors.extend(fetched.errors)
    result.status = "partial" if fetched.errors else "success"

    if options.dry_run:
        return result

    try:
        with get_connection(config.database_path) as conn:
            for item in fetched.items:
                if _is_duplicate(conn, item):
                    result.duplicates += 1
                    logger.debug("Duplicate skipped: %s", item.dedup_key)
                    continue
                persist_update(conn, item)
                result.new_items += 1
    except sqlite3.Error as exc:
        logger.exception("Storing items for source '%s' failed", source.id)
        result.status = "failed"
        result.new_items = 0
        result.duplicates = 0
        result.errors.append(f"Source {source.id} failed: {exc}")
        return result

    # A partial run keeps the old cursor so the failed requests are retried next time.
    if result.status == "success":
        result.cursor_after = run_started.date().isoformat()
    return result


def run_ingest(config: Config, options: IngestOptions | None = None) -> IngestRunResult:
    """Run every enabled source once and record the outcome.

    Each source's failure is contained: it is recorded as a failed source
    and the run moves on. The run status is ``success`` when no errors were
    reported, ``partial`` when at least one source was processed, and
    ``failed`` otherwise.
    """
    options = options or IngestOptions()
    run = IngestRunResult(
        run_id=str(uuid.uuid4()),
        started_at=datetime.now(timezone.utc).isoformat(),
    )
    logger.info("Starting ingest run %s", run.run_id)

    try:
        sources = [s for s in load_sources_config(config.sources_config_path) if s.enabled]
    except (OSError, ValueError) as exc:
        logger.exception("Could not load sources config %s", config.sources_config_path)
        run.errors.append(f"Pipeline error: {exc}")
        run.status = "failed"
        run.finished_at = datetime.now(timezone.utc).isoformat()
        return run

    if options.source_ids is not None:
        sources = [s for s in sources if s.id in options.source_ids]

    for source in sources:
        source_started = datetime.now(timezone.utc).isoformat()
        result = _run_source(config, source, options)
        run.sources.append(result)
        run.errors.extend(f"[{source.id}] {e}" for e in result.errors)
        if not options.dry_run:
            _record_source_outcome(config.database_path, run.run_id, source_started, result)
        logger.info(
            "Source %s: %s (%d fetched, %d new, %d duplicates, %d errors)",
            source.id, result.status, result.items_fetched,
            result.new_items, result.duplicates, len(result.errors),
        )

    if not run.errors:
        run.status = "success"
    elif run.sources_processed:
        run.status = "partial"
    else:
        run.status = "failed"
    run.finished_at = datetime.now(timezone.utc).isoformat()

    logger.info(
        "Ingest run %s %s: %d sources processed, %d fetched, %d new, %d duplicates, %d errors",
        run.run_id, run.status, run.sources_processed, run.items_fetched,
        run.new_items, run.duplicates, len(run.errors),
    )
    return run


def run_scheduled_ingest(config: Config) -> None:
    """Scheduler entry point for the ingest run. Never raises."""
    try:
        run_ingest(config)
    except Exception:
        logger.exception("Ingest run failed")
