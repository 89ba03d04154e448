"""CourtListener source adapter — landlord-tenant case law via the v4 search API."""

from __future__ import annotations

import logging
import re

import httpx

from legiswatch.sources.adapter import ItemCollector, SourceAdapter, resolve_since
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

_BASE_URL = "https://www.courtlistener.com/api/rest/v4"
_SITE_URL = "https://www.courtlistener.com"

SEARCH_QUERY = '"landlord tenant" OR eviction OR lease'

# State supreme/appellate courts plus the covering federal circuit.
STATE_COURTS = {
    "AZ": ("ariz", "arizctapp", "ca9"),
    "CA": ("cal", "calctapp", "ca9"),
    "CO": ("colo", "coloctapp", "ca10"),
    "FL": ("fla", "fladistctapp", "ca11"),
    "ID": ("idaho", "idahoctapp", "ca9"),
    "MI": ("mich", "michctapp", "ca6"),
    "NC": ("nc", "ncctapp", "ca4"),
    "ND": ("nd", "ca8"),
    "NM": ("nm", "nmctapp", "ca10"),
    "NV": ("nev", "ca9"),
    "NY": ("ny", "nyappdiv", "ca2"),
    "OH": ("ohio", "ohioctapp", "ca6"),
    "OK": ("okla", "oklacivapp", "ca10"),
    "SD": ("sd", "ca8"),
    "TX": ("tex", "texapp", "ca5"),
    "UT": ("utah", "utahctapp", "ca10"),
    "VA": ("va", "vactapp", "ca4"),
    "WA": ("wash", "washctapp", "ca9"),
    "WY": ("wyo", "ca10"),
}

_FEDERAL_COURT_RE = re.compile(r"^(ca\d+|cadc|cafc|scotus)$")

_RULES = (
    TopicRule(
        keywords=("landlord", "tenant", "eviction", "lease", "rental", "housing"),
        tags=("landlord_tenant",),
        refinements=(
            Refinement("fair_housing", ("fair housing",)),
            Refinement("eviction", ("eviction",)),
        ),
    ),
)


def classify_case(case: dict) -> tuple[str, ...]:
    snippets = " ".join(o.get("snippet", "") for o in case.get("opinions") or [])
    text = build_search_text(
        case.get("caseName") or case.get("case_name"),
        case.get("caseNameFull") or case.get("case_name_full"),
        case.get("suitNature") or case.get("nature_of_suit"),
        snippets,
    )
    return finalize(classify(text, _RULES))


def normalize_case(case: dict, state: str | None = None) -> NormalizedLegislationItem:
    """Map a CourtListener opinion search hit onto the normalized schema."""
    cluster_id = case.get("cluster_id") or case.get("id")
    docket_number = case.get("docketNumber") or case.get("case_number")
    court_id = case.get("court_id") or ""
    status = case.get("status") or case.get("precedential_status") or "Unknown"
    absolute_url = case.get("absolute_url")

    if state is None and _FEDERAL_COURT_RE.match(court_id):
        jurisdiction = Jurisdiction(level="federal")
    else:
        jurisdiction = Jurisdiction(level="state", state=state)

    return NormalizedLegislationItem(
        source="courtListener",
        source_key=str(cluster_id),
        item_type="case",
        jurisdiction=jurisdiction,
        title=(case.get("caseName") or case.get("case_name") or "").strip(),
        summary=case.get("caseNameFull") or case.get("case_name_full") or None,
        status=status,
        published_at=case.get("dateFiled") or case.get("date_filed"),
        url=f"{_SITE_URL}{absolute_url}" if absolute_url else None,
        topics=classify_case(case),
        severity="high" if status == "Published" else "medium",
        cross_ref_key=f"CASE-{docket_number}" if docket_number else f"CASE-{cluster_id}",
        raw=case,
    )


class CourtListenerAdapter(SourceAdapter):
    """Adapter for case law on CourtListener.

    One search per requested state, restricted to that state's courts.
    Without states, a single unrestricted search is made.
    """

    default_poll_interval = 10080

    def __init__(self, api_key: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(timeout)
        self._api_key = api_key

    @property
    def source_id(self) -> str:
        return "courtListener"

    @property
    def name(self) -> str:
        return "CourtListener"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        errors: list[str] = []
        if not self._api_key:
            errors.append("COURTLISTENER_API_KEY not configured")
            return SourceFetchResult(errors=errors)

        collector = ItemCollector(params)
        has_more = False
        base_query: dict[str, str] = {
            "q": SEARCH_QUERY,
            "type": "o",
            "order_by": "dateFiled desc",
        }
        if params.since:
            base_query["filed_after"] = resolve_since(params.since, 0).isoformat()

        targets: list[str | None] = [s.upper() for s in params.states] if params.states else [None]
        for state in targets:
            label = state or "all courts"
            query = dict(base_query)
            if state is not None:
                courts = STATE_COURTS.get(state)
                if courts is None:
                    errors.append(f"CourtListener: no court mapping for {state}")
                    continue
                query["court"] = " ".join(courts)

            try:
                resp = httpx.get(
                    f"{_BASE_URL}/search/",
                    params=query,
                    headers={
                        "Authorization": f"Token {self._api_key}",
                        "Accept": "application/json",
                    },
                    timeout=self._timeout,
                )
                if not resp.is_success:
                    errors.append(f"CourtListener error for {label}: {resp.status_code}")
                    continue
                data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("CourtListener request failed for %s: %s", label, exc)
                errors.append(f"CourtListener fetch error for {label}: {exc}")
                continue

            results = data.get("results") or []
            has_more = has_more or bool(data.get("next"))
            for case in results:
                collector.add(normalize_case(case, state))
            logger.info("CourtListener %s: found %d cases", label, len(results))

        return SourceFetchResult(items=collector.items, errors=errors, has_more=has_more)
