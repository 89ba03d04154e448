"""eCFR source adapter — amendments to housing parts of 24 CFR via the versioner API."""

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
from legiswatch.sources.topics import finalize

logger = logging.getLogger(__name__)

_BASE_URL = "https://www.ecfr.gov/api/versioner/v1"
_CFR_TITLE = 24
_DEFAULT_WINDOW_DAYS = 90

NAHASDA_PARTS = (1000,)
LANDLORD_TENANT_PARTS = (5, 8, 35, 200, 982, 983)


def classify_part(part: int) -> tuple[str, ...]:
    """Topics are decided by which CFR part changed, not by text."""
    if part in NAHASDA_PARTS:
        return ("nahasda_core", "ihbg")
    if part in LANDLORD_TENANT_PARTS:
        return ("hud_general", "landlord_tenant")
    return finalize([])


def severity_for_part(part: int) -> str:
    if part in NAHASDA_PARTS:
        return "high"
    if part in LANDLORD_TENANT_PARTS:
        return "medium"
    return "low"


def normalize_amendment(part: int, date: str, versions: list[dict]) -> NormalizedLegislationItem:
    """Build one item for every section of ``part`` amended on ``date``."""
    sections = sorted({v["identifier"] for v in versions if v.get("identifier")})
    summary = f"Code of Federal Regulations Title {_CFR_TITLE} Part {part} was amended"
    if sections:
        summary += f" (sections {', '.join(sections)})"
    issue_dates = [v["issue_date"] for v in versions if v.get("issue_date")]

    return NormalizedLegislationItem(
        source="ecfr",
        source_key=f"{_CFR_TITLE}-{part}-{date}",
        item_type="cfr_change",
        jurisdiction=Jurisdiction(level="federal"),
        title=f"{_CFR_TITLE} CFR Part {part} - Amendment {date}",
        summary=summary,
        status="amended",
        effective_date=date,
        published_at=min(issue_dates) if issue_dates else date,
        url=f"https://www.ecfr.gov/current/title-{_CFR_TITLE}/part-{part}",
        topics=classify_part(part),
        severity=severity_for_part(part),
        cfr_references=tuple(
            CfrReference(title=_CFR_TITLE, part=part, section=s) for s in sections
        ) or (CfrReference(title=_CFR_TITLE, part=part),),
        cross_ref_key=f"CFR-{_CFR_TITLE}-{part}-{date}",
        raw=versions,
    )


class EcfrAdapter(SourceAdapter):
    """Adapter for amendments to the Code of Federal Regulations, Title 24."""

    default_poll_interval = 1440

    @property
    def source_id(self) -> str:
        return "ecfr"

    @property
    def name(self) -> str:
        return "eCFR (Code of Federal Regulations)"

    def is_available(self) -> bool:
        return True

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        errors: list[str] = []
        collector = ItemCollector(params)
        parts = NAHASDA_PARTS if params.include_tribal else LANDLORD_TENANT_PARTS
        from_date = resolve_since(params.since, _DEFAULT_WINDOW_DAYS).isoformat()
        to_date = today_utc().isoformat()

        for part in parts:
            try:
                resp = httpx.get(
                    f"{_BASE_URL}/versions/title-{_CFR_TITLE}.json",
                    params={
                        "part": part,
                        "issue_date[gte]": from_date,
                        "issue_date[lte]": to_date,
                    },
                    headers={"Accept": "application/json"},
                    timeout=self._timeout,
                )
                if resp.status_code == 404:
                    continue
                if not resp.is_success:
                    errors.append(f"eCFR error for Part {part}: {resp.status_code}")
                    continue
                data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("eCFR request failed for part %s: %s", part, exc)
                errors.append(f"eCFR fetch error for Part {part}: {exc}")
                continue

            by_date: dict[str, list[dict]] = {}
            for version in data.get("content_versions") or []:
                date = version.get("date") or version.get("amendment_date")
                if date:
                    by_date.setdefault(date, []).append(version)

            for date, versions in sorted(by_date.items(), reverse=True):
                collector.add(normalize_amendment(part, date, versions))

        logger.info("eCFR: found %d CFR changes", len(collector))
        return SourceFetchResult(items=collector.items, errors=errors)
