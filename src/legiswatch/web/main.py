"""Standalone entry point for the Legiswatch read API (no scheduler)."""

from __future__ import annotations

import logging

import uvicorn

from legiswatch.config import load_config
from legiswatch.web.app import create_app


def main() -> None:
    """Serve the read API only; ingest runs belong to ``legiswatch.main``."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=config.web_host, port=config.web_port)


if __name__ == "__main__":
    main()
