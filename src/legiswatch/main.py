"""Application entry point — runs the ingest scheduler and the read API in one process."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from legiswatch.config import Config, load_config
from legiswatch.ingest import run_scheduled_ingest
from legiswatch.sources import init_adapters
from legiswatch.storage import init_db
from legiswatch.web.app import create_app

logger = logging.getLogger("legiswatch")


def _setup_logging(log_level: str, log_format: str) -> None:
    """Configure root logger based on config."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps(
                {
                    "time": "%(asctime)s",
                    "level": "%(levelname)s",
                    "logger": "%(name)s",
                    "message": "%(message)s",
                }
            )
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def _cron_trigger(expression: str, timezone: str) -> CronTrigger:
    """Build a CronTrigger from a five-field cron expression."""
    parts = expression.split()
    if len(parts) != 5:
        raise ValueError(f"Cron expression must have 5 fields, got {expression!r}")
    return CronTrigger(
        minute=parts[0],
        hour=parts[1],
        day=parts[2],
        month=parts[3],
        day_of_week=parts[4],
        timezone=timezone,
    )


def _build_scheduler(config: Config) -> BackgroundScheduler:
    """Create a BackgroundScheduler with the nightly ingest job."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_scheduled_ingest,
        trigger=_cron_trigger(config.ingest_schedule_cron, config.ingest_timezone),
        args=[config],
        id="ingest",
        name="Legislative source ingest",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def main() -> None:
    """Load config, set up logging, register adapters, and start scheduler + web server."""
    config = load_config()
    _setup_logging(config.log_level, config.log_format)

    logger.info(
        "Legiswatch starting (env=%s, db=%s, sources=%s)",
        config.app_env,
        config.database_path,
        config.sources_config_path,
    )

    init_db(config.database_path)
    adapters = init_adapters(config)

    scheduler = _build_scheduler(config)

    @asynccontextmanager
    async def lifespan(app):
        logger.info("Scheduler starting (ingest cron: %s)", config.ingest_schedule_cron)
        scheduler.start()
        yield
        logger.info("Scheduler shutting down")
        scheduler.shutdown(wait=False)

    app = create_app(config, adapters=adapters, lifespan=lifespan)

    uvicorn.run(app, host=config.web_host, port=config.web_port)


if __name__ == "__main__":
    main()
