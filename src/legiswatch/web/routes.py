"""API route handlers for the Legiswatch web API."""

from __future__ import annotations

import logging
import math
import sqlite3

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from legiswatch.storage.connection import get_connection
from legiswatch.web.models import (
    SourceListResponse,
    SourceRunListResponse,
    SourceStatus,
    UpdateDetail,
    UpdateListResponse,
    UpdateSummary,
)
from legiswatch.web.queries import (
    get_update_by_id,
    list_source_runs,
    list_sources,
    list_updates,
)

logger = logging.getLogger(__name__)

router = APIRouter()
health_router = APIRouter()


@health_router.get("/health")
def health(request: Request) -> JSONResponse:
    """Check database connectivity and return health status."""
    database_path = request.app.state.database_path
    try:
        with get_connection(database_path, readonly=True) as conn:
            conn.execute("SELECT 1 FROM legislation_updates LIMIT 1")
        return JSONResponse({"status": "healthy", "database": "ok"})
    except (sqlite3.Error, OSError) as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(
            {"status": "unhealthy", "database": "error", "detail": str(exc)},
            status_code=503,
        )


@router.get("/updates", response_model=UpdateListResponse)
def updates(
    request: Request,
    source: str | None = None,
    topic: str | None = None,
    state: str | None = None,
    severity: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
) -> UpdateListResponse:
    database_path = request.app.state.database_path

    filters: dict[str, str] = {}
    if source is not None:
        filters["source"] = source
    if topic is not None:
        filters["topic"] = topic
    if state is not None:
        filters["state"] = state
    if severity is not None:
        filters["severity"] = severity

    rows, total = list_updates(database_path, filters=filters, page=page, per_page=per_page)
    pages = math.ceil(total / per_page) if total else 0
    return UpdateListResponse(
        updates=[UpdateSummary(**r) for r in rows],
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )


@router.get("/updates/{update_id}", response_model=UpdateDetail)
def update_by_id(request: Request, update_id: str) -> UpdateDetail:
    database_path = request.app.state.database_path
    data = get_update_by_id(database_path, update_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Update not found")
    return UpdateDetail(**data)


@router.get("/sources", response_model=SourceListResponse)
def sources(request: Request) -> SourceListResponse:
    database_path = request.app.state.database_path
    return SourceListResponse(
        sources=[SourceStatus(**s) for s in list_sources(database_path, request.app.state.adapters)]
    )


@router.get("/runs", response_model=SourceRunListResponse)
def runs(
    request: Request,
    source: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
) -> SourceRunListResponse:
    database_path = request.app.state.database_path
    rows, total = list_source_runs(database_path, source=source, page=page, per_page=per_page)
    pages = math.ceil(total / per_page) if total else 0
    return SourceRunListResponse(
        runs=rows,
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )
