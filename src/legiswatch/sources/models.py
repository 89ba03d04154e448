"""Normalized legislation item schema shared by every source adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SOURCE_IDS = frozenset({
    "legiscan", "pluralPolicy", "federalRegister", "courtListener",
    "utahGlen", "congressGov", "hudOnap", "ecfr",
})

ITEM_TYPES = frozenset({"bill", "regulation", "case", "notice", "cfr_change"})

JURISDICTION_LEVELS = frozenset({"federal", "state", "tribal", "local"})

SEVERITIES = frozenset({"low", "medium", "high", "critical"})

TOPIC_TAGS = frozenset({
    "landlord_tenant", "nahasda_core", "tribal_adjacent", "ihbg",
    "hud_general", "fair_housing", "security_deposit", "eviction",
    "environmental", "procurement", "income_limits", "not_relevant",
})

TRIBAL_TOPICS = frozenset({"nahasda_core", "ihbg", "tribal_adjacent"})


@dataclass(frozen=True)
class Jurisdiction:
    """Where a legislative item applies. Country is always US."""

    level: str
    country: str = "US"
    state: str | None = None
    locality: str | None = None
    tribe: str | None = None


@dataclass(frozen=True)
class CfrReference:
    """A Code of Federal Regulations citation (e.g. 24 CFR 1000.2)."""

    title: int
    part: int
    section: str | None = None


@dataclass(frozen=True)
class NormalizedLegislationItem:
    """Canonical representation of one bill, regulation, case, notice, or CFR change."""

    source: str
    source_key: str
    item_type: str
    jurisdiction: Jurisdiction
    title: str
    topics: tuple[str, ...]
    raw: Any
    summary: str | None = None
    status: str | None = None
    introduced_date: str | None = None
    effective_date: str | None = None
    updated_at: str | None = None
    published_at: str | None = None
    url: str | None = None
    pdf_url: str | None = None
    severity: str | None = None
    cfr_references: tuple[CfrReference, ...] = ()
    cross_ref_key: str | None = None
    text: str | None = None

    @property
    def dedup_key(self) -> str:
        """Key used for within-fetch deduplication."""
        return self.cross_ref_key or f"{self.source}:{self.source_key}"


@dataclass(frozen=True)
class SourceFetchParams:
    """Input for a single adapter fetch."""

    states: list[str] | None = None
    since: str | None = None
    topics: list[str] | None = None
    include_tribal: bool = False


@dataclass
class SourceFetchResult:
    """Output of a single adapter fetch: accepted items plus partial-failure messages."""

    items: list[NormalizedLegislationItem] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False


def validate_item(item: NormalizedLegislationItem) -> list[str]:
    """Validate an item against the normalized contract. Returns a list of errors."""
    errors: list[str] = []
    if item.source not in SOURCE_IDS:
        errors.append(f"source '{item.source}' is not a known source id")
    if not item.source_key:
        errors.append("source_key is required and must be non-empty")
    if item.item_type not in ITEM_TYPES:
        errors.append(
            f"item_type '{item.item_type}' is not valid; "
            f"must be one of: {', '.join(sorted(ITEM_TYPES))}"
        )
    if not item.title or not item.title.strip():
        errors.append("title is required and must be non-empty")
    if item.jurisdiction.country != "US":
        errors.append(f"jurisdiction country '{item.jurisdiction.country}' must be US")
    if item.jurisdiction.level not in JURISDICTION_LEVELS:
        errors.append(f"jurisdiction level '{item.jurisdiction.level}' is not valid")
    if not item.topics:
        errors.append("topics must be non-empty")
    unknown = [t for t in item.topics if t not in TOPIC_TAGS]
    if unknown:
        errors.append(f"unknown topics: {', '.join(unknown)}")
    if item.severity is not None and item.severity not in SEVERITIES:
        errors.append(f"severity '{item.severity}' is not valid")
    return errors
