"""Congress.gov source adapter — federal housing bills via the Congress.gov v3 API."""

from __future__ import annotations

import logging

import httpx

from legiswatch.sources.adapter import ItemCollector, SourceAdapter, resolve_since, today_utc
from legiswatch.sources.models import (
    Jurisdiction,
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
)
from legiswatch.sources.topics import (
    Refinement,
    TopicRule,
    build_search_text,
    classify,
    finalize,
)

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.congress.gov/v3"
_PAGE_LIMIT = 20

NAHASDA_KEYWORDS = (
    "native american housing",
    "nahasda",
    "indian housing",
    "tribal housing",
    "ihbg",
)

HOUSING_KEYWORDS = (
    "housing",
    "landlord",
    "tenant",
    "rental",
    "fair housing",
    "section 8",
    "public housing",
    "hud",
)

_RULES = (
    TopicRule(
        keywords=NAHASDA_KEYWORDS,
        tags=("nahasda_core",),
        refinements=(Refinement("ihbg", ("ihbg", "block grant")),),
    ),
    TopicRule(
        keywords=HOUSING_KEYWORDS,
        tags=("hud_general", "landlord_tenant"),
        refinements=(Refinement("fair_housing", ("fair housing",)),),
    ),
)

# Congress.gov web paths use long-form bill type names.
_BILL_TYPE_PATHS = {
    "HR": "house-bill",
    "S": "senate-bill",
    "HRES": "house-resolution",
    "SRES": "senate-resolution",
    "HJRES": "house-joint-resolution",
    "SJRES": "senate-joint-resolution",
    "HCONRES": "house-concurrent-resolution",
    "SCONRES": "senate-concurrent-resolution",
}


def current_congress(year: int) -> int:
    """Number of the Congress sitting in ``year`` (the 1st convened in 1789)."""
    return (year - 1789) // 2 + 1


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def classify_bill(bill: dict) -> tuple[str, ...]:
    subjects = (bill.get("subjects") or {}).get("legislativeSubjects") or []
    text = build_search_text(
        bill.get("title"),
        (bill.get("policyArea") or {}).get("name"),
        " ".join(s.get("name", "") for s in subjects),
    )
    return finalize(classify(text, _RULES))


def normalize_bill(bill: dict) -> NormalizedLegislationItem:
    """Map a Congress.gov bill record onto the normalized schema."""
    congress = bill["congress"]
    bill_type = str(bill.get("type", "")).upper()
    number = bill["number"]
    bill_id = f"{bill_type}{number}"
    latest_action = (bill.get("latestAction") or {}).get("text")
    type_path = _BILL_TYPE_PATHS.get(bill_type, f"{bill_type.lower()}-bill")

    return NormalizedLegislationItem(
        source="congressGov",
        source_key=f"{congress}-{bill_id}",
        item_type="bill",
        jurisdiction=Jurisdiction(level="federal"),
        title=bill.get("title", "").strip(),
        summary=latest_action,
        status=latest_action or "Introduced",
        introduced_date=bill.get("introducedDate"),
        updated_at=bill.get("updateDate"),
        url=f"https://www.congress.gov/bill/{_ordinal(int(congress))}-congress/{type_path}/{number}",
        topics=classify_bill(bill),
        severity="medium",
        cross_ref_key=f"CONGRESS-{congress}-{bill_id}",
        raw=bill,
    )


class CongressGovAdapter(SourceAdapter):
    """Adapter for federal bills on Congress.gov."""

    default_poll_interval = 1440

    def __init__(self, api_key: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(timeout)
        self._api_key = api_key

    @property
    def source_id(self) -> str:
        return "congressGov"

    @property
    def name(self) -> str:
        return "Congress.gov"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        errors: list[str] = []
        if not self._api_key:
            errors.append("CONGRESS_GOV_API_KEY not configured - skipping")
            return SourceFetchResult(errors=errors)

        if params.include_tribal:
            search_terms = [*NAHASDA_KEYWORDS[:2], *HOUSING_KEYWORDS[:2]]
        else:
            search_terms = list(HOUSING_KEYWORDS[:3])

        congress = current_congress(today_utc().year)
        collector = ItemCollector(params)

        query: dict[str, str | int] = {
            "format": "json",
            "limit": _PAGE_LIMIT,
            "api_key": self._api_key,
        }
        if params.since:
            query["fromDateTime"] = f"{resolve_since(params.since, 0).isoformat()}T00:00:00Z"

        for term in search_terms:
            try:
                resp = httpx.get(
                    f"{_BASE_URL}/bill/{congress}",
                    params={**query, "query": term},
                    headers={"Accept": "application/json"},
                    timeout=self._timeout,
                )
                if not resp.is_success:
                    errors.append(f'Congress.gov error for "{term}": {resp.status_code}')
                    continue
                data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Congress.gov request failed for %r: %s", term, exc)
                errors.append(f'Congress.gov fetch error for "{term}": {exc}')
                continue

            for bill in data.get("bills") or []:
                collector.add(normalize_bill(bill))

        logger.info("Congress.gov: found %d federal bills", len(collector))
        return SourceFetchResult(items=collector.items, errors=errors)
