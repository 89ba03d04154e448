"""Federal Register source adapter — HUD rules, proposed rules, and notices."""

from __future__ import annotations

import logging

import httpx

from legiswatch.sources.adapter import ItemCollector, SourceAdapter, resolve_since, today_utc
from legiswatch.sources.models import (
    CfrReference,
    Jurisdiction,
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
)
from legiswatch.sources.topics import (
    LANDLORD_TENANT_REFINEMENTS,
    NAHASDA_REFINEMENTS,
    TopicRule,
    apply_rule,
    build_search_text,
    finalize,
)

logger = logging.getLogger(__name__)

_BASE_URL = "https://www.federalregister.gov/api/v1"
_HUD_AGENCY_SLUG = "housing-and-urban-development-department"
_DEFAULT_WINDOW_DAYS = 30
_PER_PAGE = 50

_FIELDS = (
    "document_number", "title", "type", "abstract", "html_url", "pdf_url",
    "publication_date", "agencies", "agency_names", "action", "dates",
    "effective_on", "comments_close_on", "significant", "topics", "cfr_references",
)

NAHASDA_KEYWORDS = (
    "nahasda",
    "native american housing",
    "indian housing block grant",
    "ihbg",
    "tribal housing",
    "title vi",
    "24 cfr 1000",
    "indian housing plan",
    "ihp",
    "tdhe",
    "tribally designated housing entity",
)

LANDLORD_TENANT_KEYWORDS = (
    "landlord",
    "tenant",
    "eviction",
    "rental housing",
    "fair housing",
    "lease",
    "security deposit",
    "housing discrimination",
    "section 8",
    "public housing",
)

_NAHASDA_RULE = TopicRule(NAHASDA_KEYWORDS, ("nahasda_core",), NAHASDA_REFINEMENTS)
_LANDLORD_TENANT_RULE = TopicRule(
    LANDLORD_TENANT_KEYWORDS, ("landlord_tenant",), LANDLORD_TENANT_REFINEMENTS
)


def _is_hud_document(doc: dict) -> bool:
    for agency in doc.get("agencies") or []:
        name = (agency.get("name") or "").lower()
        if agency.get("slug") == _HUD_AGENCY_SLUG or "hud" in name or "housing and urban" in name:
            return True
    return False


def classify_document(doc: dict) -> tuple[str, ...]:
    text = build_search_text(
        doc.get("title"), doc.get("abstract"), " ".join(doc.get("topics") or [])
    )
    cites_part_1000 = any(
        ref.get("title") == 24 and ref.get("part") == 1000
        for ref in doc.get("cfr_references") or []
    )
    topics: list[str] = []
    apply_rule(_NAHASDA_RULE, text, topics, force=cites_part_1000)
    apply_rule(_LANDLORD_TENANT_RULE, text, topics)
    if not topics and _is_hud_document(doc):
        topics.append("hud_general")
    return finalize(topics)


def severity_for_document(doc: dict) -> str:
    if doc.get("significant"):
        return "high"
    doc_type = doc.get("type")
    if doc_type == "Rule":
        return "high"
    if doc_type == "Proposed Rule":
        return "medium"
    return "low"


def normalize_document(doc: dict) -> NormalizedLegislationItem:
    """Map a Federal Register document onto the normalized schema."""
    refs = tuple(
        CfrReference(title=int(ref["title"]), part=int(ref["part"]))
        for ref in doc.get("cfr_references") or []
        if ref.get("title") is not None and ref.get("part") is not None
    )
    return NormalizedLegislationItem(
        source="federalRegister",
        source_key=doc["document_number"],
        item_type="regulation",
        jurisdiction=Jurisdiction(level="federal"),
        title=(doc.get("title") or "").strip(),
        summary=doc.get("abstract"),
        status=doc.get("type"),
        published_at=doc.get("publication_date"),
        effective_date=doc.get("effective_on"),
        url=doc.get("html_url"),
        pdf_url=doc.get("pdf_url"),
        topics=classify_document(doc),
        severity=severity_for_document(doc),
        cfr_references=refs,
        cross_ref_key=f"FR-{doc['document_number']}",
        raw=doc,
    )


class FederalRegisterAdapter(SourceAdapter):
    """Adapter for HUD documents published in the Federal Register.

    Works without a key; a data.gov key is sent when configured.
    """

    default_poll_interval = 720

    def __init__(self, api_key: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(timeout)
        self._api_key = api_key

    @property
    def source_id(self) -> str:
        return "federalRegister"

    @property
    def name(self) -> str:
        return "Federal Register"

    def is_available(self) -> bool:
        return True

    def _query(self, params: SourceFetchParams) -> list[tuple[str, str | int]]:
        from_date = resolve_since(params.since, _DEFAULT_WINDOW_DAYS).isoformat()
        query: list[tuple[str, str | int]] = [
            ("conditions[agencies][]", _HUD_AGENCY_SLUG),
            ("conditions[publication_date][gte]", from_date),
            ("conditions[publication_date][lte]", today_utc().isoformat()),
            ("conditions[type][]", "RULE"),
            ("conditions[type][]", "PRORULE"),
            ("conditions[type][]", "NOTICE"),
            ("per_page", _PER_PAGE),
            ("order", "newest"),
        ]
        query.extend(("fields[]", f) for f in _FIELDS)
        return query

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        errors: list[str] = []
        collector = ItemCollector(params)
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["X-Api-Key"] = self._api_key

        try:
            resp = httpx.get(
                f"{_BASE_URL}/documents.json",
                params=self._query(params),
                headers=headers,
                timeout=self._timeout,
            )
            if not resp.is_success:
                errors.append(f"Federal Register API error: {resp.status_code}")
                return SourceFetchResult(errors=errors)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Federal Register request failed: %s", exc)
            errors.append(f"Federal Register fetch error: {exc}")
            return SourceFetchResult(errors=errors)

        for doc in data.get("results") or []:
            collector.add(normalize_document(doc))

        logger.info("Federal Register: found %d relevant documents", len(collector))
        return SourceFetchResult(
            items=collector.items,
            errors=errors,
            has_more=bool(data.get("next_page_url")),
        )
