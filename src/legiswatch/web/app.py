"""FastAPI application factory for the Legiswatch web API."""

from __future__ import annotations

from fastapi import FastAPI

from legiswatch.config import Config
from legiswatch.sources import build_adapters
from legiswatch.sources.adapter import SourceAdapter
from legiswatch.web.routes import health_router, router


def create_app(
    config: Config,
    adapters: list[SourceAdapter] | None = None,
    lifespan=None,
) -> FastAPI:
    """Build and return a configured FastAPI application.

    ``adapters`` supplies the source metadata shown by ``/api/v1/sources``;
    when omitted, the adapters are built from ``config`` without being
    registered.
    """
    app = FastAPI(title="Legiswatch", docs_url="/api/docs", lifespan=lifespan)
    app.state.database_path = config.database_path
    app.state.adapters = list(adapters) if adapters is not None else build_adapters(config)
    app.include_router(health_router)
    app.include_router(router, prefix="/api/v1")
    return app
