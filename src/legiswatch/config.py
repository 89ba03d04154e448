"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

RATE_LIMIT_POLICIES = frozenset({"abort", "retry"})


@dataclass(frozen=True)
class Config:
    """Application configuration. All values sourced from environment variables."""

    # Required
    database_path: str

    # Optional — Source API keys
    congress_gov_api_key: str | None = None
    legiscan_api_key: str | None = None
    plural_policy_api_key: str | None = None
    courtlistener_api_key: str | None = None
    data_gov_api_key: str | None = None

    # Optional — Ingestion
    sources_config_path: str = "./config/sources.json"
    ingest_schedule_cron: str = "30 1 * * *"
    ingest_timezone: str = "UTC"
    http_timeout_seconds: float = 30.0

    # Optional — Plural Policy rate limiting
    plural_policy_min_interval_seconds: float = 1.1
    plural_policy_on_rate_limit: str = "abort"
    plural_policy_retry_backoff_seconds: float = 60.0

    # Optional — Web
    web_host: str = "0.0.0.0"
    web_port: int = 8080

    # Optional — Application
    log_level: str = "INFO"
    log_format: str = "json"
    app_env: str = "production"


_REQUIRED_VARS = [
    "DATABASE_PATH",
]


def _optional(name: str) -> str | None:
    """Return an env var, treating empty strings as unset."""
    value = os.environ.get(name, "").strip()
    return value or None


def load_config(env_path: str | Path | None = None) -> Config:
    """Load configuration from environment variables.

    Loads a .env file if present (for local development), then validates
    that all required variables are set. Raises ValueError listing any
    missing variables, or naming an invalid rate-limit policy.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [var for var in _REQUIRED_VARS if not os.environ.get(var)]
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    on_rate_limit = os.environ.get("PLURAL_POLICY_ON_RATE_LIMIT", "abort").lower()
    if on_rate_limit not in RATE_LIMIT_POLICIES:
        raise ValueError(
            f"PLURAL_POLICY_ON_RATE_LIMIT '{on_rate_limit}' is not valid; "
            f"must be one of: {', '.join(sorted(RATE_LIMIT_POLICIES))}"
        )

    return Config(
        # Required
        database_path=os.environ["DATABASE_PATH"],
        # Optional — Source API keys
        congress_gov_api_key=_optional("CONGRESS_GOV_API_KEY"),
        legiscan_api_key=_optional("LEGISCAN_API_KEY"),
        plural_policy_api_key=_optional("PLURAL_POLICY_API_KEY"),
        courtlistener_api_key=_optional("COURTLISTENER_API_KEY"),
        data_gov_api_key=_optional("DATA_GOV_API_KEY"),
        # Optional — Ingestion
        sources_config_path=os.environ.get("SOURCES_CONFIG_PATH", "./config/sources.json"),
        ingest_schedule_cron=os.environ.get("INGEST_SCHEDULE_CRON", "30 1 * * *"),
        ingest_timezone=os.environ.get("INGEST_TIMEZONE", "UTC"),
        http_timeout_seconds=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "30")),
        # Optional — Plural Policy rate limiting
        plural_policy_min_interval_seconds=float(
            os.environ.get("PLURAL_POLICY_MIN_INTERVAL_SECONDS", "1.1")
        ),
        plural_policy_on_rate_limit=on_rate_limit,
        plural_policy_retry_backoff_seconds=float(
            os.environ.get("PLURAL_POLICY_RETRY_BACKOFF_SECONDS", "60")
        ),
        # Optional — Web
        web_host=os.environ.get("WEB_HOST", "0.0.0.0"),
        web_port=int(os.environ.get("WEB_PORT", "8080")),
        # Optional — Application
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_format=os.environ.get("LOG_FORMAT", "json"),
        app_env=os.environ.get("APP_ENV", "production"),
    )
