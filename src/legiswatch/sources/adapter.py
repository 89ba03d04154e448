"""Source adapter interface and the per-fetch item collector."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

from legiswatch.sources.models import (
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
    validate_item,
)
from legiswatch.sources.topics import is_relevant, matches_topic_filter

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Base class for adapter errors that abort a fetch."""


class SourceConfigurationError(SourceError):
    """A required credential or setting is missing."""


class MissingStatesError(SourceError, ValueError):
    """A state-scoped adapter was called without ``params.states``."""


def resolve_since(since: str | None, default_days: int) -> date:
    """Return the start date of a fetch window.

    Uses ``since`` (any ISO 8601 date or datetime) when given, otherwise
    ``default_days`` before today (UTC). An unparseable ``since`` falls back
    to the default window.
    """
    if since:
        try:
            return datetime.fromisoformat(since.replace("Z", "+00:00")).date()
        except ValueError:
            logger.warning("Ignoring unparseable since value %r", since)
    return (datetime.now(timezone.utc) - timedelta(days=default_days)).date()


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


class SourceAdapter(ABC):
    """Abstract base class for legislative source adapters.

    Every adapter owns one external API's request and response shapes and
    produces ``NormalizedLegislationItem`` objects. The rest of the system
    is source-agnostic.
    """

    kind: str = "api"
    default_poll_interval: int = 1440  # minutes

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    @property
    @abstractmethod
    def source_id(self) -> str:
        """Stable identifier, one of ``SOURCE_IDS``."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable adapter name."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the adapter can run (usually: is its API key configured)."""

    @abstractmethod
    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        """Fetch and normalize items.

        Per-request failures are reported in ``SourceFetchResult.errors``
        and never abort the remaining requests.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.source_id}>"


class ItemCollector:
    """Accumulates normalized items for one fetch call.

    Drops items outside the requested topic filter, items tagged
    ``not_relevant``, items that fail validation, and repeats of an
    already-collected ``dedup_key``.
    """

    def __init__(self, params: SourceFetchParams) -> None:
        self._topic_filter = params.topics
        self._seen: set[str] = set()
        self.items: list[NormalizedLegislationItem] = []

    def add(self, item: NormalizedLegislationItem) -> bool:
        """Add an item if it passes all filters. Returns True when accepted."""
        if not is_relevant(item.topics):
            return False
        if not matches_topic_filter(item.topics, self._topic_filter):
            return False
        if item.dedup_key in self._seen:
            return False
        problems = validate_item(item)
        if problems:
            logger.warning(
                "Dropping invalid %s item %s: %s",
                item.source, item.source_key, "; ".join(problems),
            )
            return False
        self._seen.add(item.dedup_key)
        self.items.append(item)
        return True

    def __len__(self) -> int:
        return len(self.items)
