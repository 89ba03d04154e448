"""Pydantic v2 response models for the Legiswatch web API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------
class UpdateSummary(BaseModel):
    id: str
    source: str
    source_key: str
    cross_ref_key: str | None
    item_type: str
    jurisdiction_level: str
    jurisdiction_state: str | None
    title: str
    summary: str | None
    status: str | None
    published_at: str | None
    url: str | None
    topics: list[str]
    severity: str | None
    ingested_at: str


class UpdateListResponse(BaseModel):
    updates: list[UpdateSummary]
    total: int
    page: int
    per_page: int
    pages: int


class CfrReferenceEntry(BaseModel):
    title: int
    part: int
    section: str | None = None


class UpdateDetail(UpdateSummary):
    jurisdiction_tribe: str | None
    introduced_date: str | None
    effective_date: str | None
    source_updated_at: str | None
    pdf_url: str | None
    cfr_references: list[CfrReferenceEntry]
    raw_data: Any
    content_hash: str


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------
class SourceStatus(BaseModel):
    source_id: str
    name: str | None = None
    kind: str | None = None
    default_poll_interval: int | None = None
    last_run_at: str | None = None
    last_run_status: str | None = None
    last_seen_date: str | None = None
    last_error: str | None = None


class SourceListResponse(BaseModel):
    sources: list[SourceStatus]


# ---------------------------------------------------------------------------
# Source runs
# ---------------------------------------------------------------------------
class SourceRun(BaseModel):
    id: str
    run_id: str
    source_id: str
    started_at: str
    finished_at: str
    status: str
    items_fetched: int
    new_items: int
    duplicates: int
    cursor_before: str | None
    cursor_after: str | None
    errors: list[str]


class SourceRunListResponse(BaseModel):
    runs: list[SourceRun]
    total: int
    page: int
    per_page: int
    pages: int
