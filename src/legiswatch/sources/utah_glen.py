"""Utah GLEN source adapter — Utah Legislature bill search."""

from __future__ import annotations

import logging

import httpx

from legiswatch.sources.adapter import ItemCollector, SourceAdapter, today_utc
from legiswatch.sources.models import (
    Jurisdiction,
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
)
from legiswatch.sources.topics import (
    LANDLORD_TENANT_REFINEMENTS,
    TopicRule,
    build_search_text,
    classify,
    finalize,
)

logger = logging.getLogger(__name__)

_BASE_URL = "https://glen.le.utah.gov"

NAHASDA_KEYWORDS = (
    "native american",
    "indian",
    "tribal",
    "tribe",
    "nahasda",
    "housing authority",
    "reservation",
)

LANDLORD_TENANT_KEYWORDS = (
    "landlord",
    "tenant",
    "eviction",
    "rental",
    "lease",
    "housing",
    "security deposit",
    "fair housing",
)

_RULES = (
    TopicRule(NAHASDA_KEYWORDS, ("nahasda_core", "tribal_adjacent")),
    TopicRule(LANDLORD_TENANT_KEYWORDS, ("landlord_tenant",), LANDLORD_TENANT_REFINEMENTS),
)


def classify_bill(bill: dict) -> tuple[str, ...]:
    text = build_search_text(bill.get("shortTitle"), bill.get("subject"), bill.get("code"))
    return finalize(classify(text, _RULES))


def normalize_bill(bill: dict) -> NormalizedLegislationItem:
    year = bill.get("generalSessionYear") or str(today_utc().year)
    bill_number = bill.get("billNumber") or bill.get("bill")
    return NormalizedLegislationItem(
        source="utahGlen",
        source_key=bill.get("bill") or bill_number,
        item_type="bill",
        jurisdiction=Jurisdiction(level="state", state="UT"),
        title=(bill.get("shortTitle") or "").strip(),
        summary=bill.get("subject"),
        status=bill.get("lastAction"),
        updated_at=bill.get("lastActionDate"),
        url=f"https://le.utah.gov/~{year}/bills/static/{bill_number}.html",
        topics=classify_bill(bill),
        severity="medium",
        cross_ref_key=f"UT-{bill_number}-{year}",
        raw=bill,
    )


class UtahGlenAdapter(SourceAdapter):
    """Adapter for the Utah Legislature's GLEN bill search. No key required."""

    default_poll_interval = 60

    @property
    def source_id(self) -> str:
        return "utahGlen"

    @property
    def name(self) -> str:
        return "Utah GLEN"

    def is_available(self) -> bool:
        return True

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        errors: list[str] = []
        collector = ItemCollector(params)
        terms = list(LANDLORD_TENANT_KEYWORDS[:3])
        if params.include_tribal:
            terms.extend(NAHASDA_KEYWORDS[:2])
        year = today_utc().year

        for term in terms:
            try:
                resp = httpx.get(
                    f"{_BASE_URL}/bills.json",
                    params={"year": year, "search": term},
                    headers={"Accept": "application/json"},
                    timeout=self._timeout,
                )
                if not resp.is_success:
                    errors.append(f'Utah GLEN error for "{term}": {resp.status_code}')
                    continue
                data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Utah GLEN request failed for %r: %s", term, exc)
                errors.append(f'Utah GLEN fetch error for "{term}": {exc}')
                continue

            if data.get("error"):
                errors.append(f'Utah GLEN error for "{term}": {data["error"]}')
                continue

            for bill in data.get("bills") or []:
                collector.add(normalize_bill(bill))

        logger.info("Utah GLEN: found %d relevant bills", len(collector))
        return SourceFetchResult(items=collector.items, errors=errors)
