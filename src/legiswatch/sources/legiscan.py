"""LegiScan source adapter — state landlord-tenant bills via the LegiScan search API."""

from __future__ import annotations

import logging

import httpx

from legiswatch.sources.adapter import (
    ItemCollector,
    MissingStatesError,
    SourceAdapter,
    SourceConfigurationError,
    today_utc,
)
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

_BASE_URL = "https://api.legiscan.com/"

STATUS_MAP = {
    1: "Introduced",
    2: "Engrossed",
    3: "Enrolled",
    4: "Passed",
    5: "Vetoed",
    6: "Failed",
}

SEARCH_KEYWORDS = ("landlord", "tenant", "rental", "eviction", "lease", "housing")

_RULES = (
    TopicRule(
        keywords=(
            "landlord",
            "tenant",
            "rental",
            "eviction",
            "lease",
            "housing",
            "residential tenancy",
            "security deposit",
        ),
        tags=("landlord_tenant",),
        refinements=LANDLORD_TENANT_REFINEMENTS,
    ),
)


def classify_bill(bill: dict) -> tuple[str, ...]:
    subjects = bill.get("subjects") or []
    text = build_search_text(
        bill.get("title"),
        bill.get("description"),
        " ".join(s.get("subject_name", "") for s in subjects),
    )
    return finalize(classify(text, _RULES))


def normalize_bill(bill: dict, state: str) -> NormalizedLegislationItem:
    """Map a LegiScan search result onto the normalized schema."""
    status_code = bill.get("status")
    if status_code in STATUS_MAP:
        status = STATUS_MAP[status_code]
    else:
        status = bill.get("last_action") or "Unknown"
    session_year = (bill.get("session") or {}).get("year_start") or today_utc().year
    bill_number = bill.get("bill_number", "")

    return NormalizedLegislationItem(
        source="legiscan",
        source_key=str(bill["bill_id"]),
        item_type="bill",
        jurisdiction=Jurisdiction(level="state", state=state),
        title=(bill.get("title") or "").strip(),
        summary=bill.get("description"),
        status=status,
        updated_at=bill.get("status_date") or bill.get("last_action_date"),
        url=bill.get("url"),
        topics=classify_bill(bill),
        severity="high" if isinstance(status_code, int) and status_code >= 3 else "medium",
        cross_ref_key=f"{state}-{bill_number}-{session_year}",
        raw=bill,
    )


class LegiScanAdapter(SourceAdapter):
    """Adapter for state legislation tracked by LegiScan."""

    default_poll_interval = 1440

    def __init__(self, api_key: str | None = None, timeout: float = 30.0) -> None:
        super().__init__(timeout)
        self._api_key = api_key

    @property
    def source_id(self) -> str:
        return "legiscan"

    @property
    def name(self) -> str:
        return "LegiScan"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        if not self._api_key:
            raise SourceConfigurationError(
                "LEGISCAN_API_KEY not configured - cannot proceed with legislative monitoring"
            )
        # No fallback state list: monitored states come only from the sources config.
        if not params.states:
            raise MissingStatesError(
                "LegiScan requires states to be provided via params.states"
            )

        errors: list[str] = []
        collector = ItemCollector(params)
        year = today_utc().year
        query = " OR ".join(SEARCH_KEYWORDS)

        for state in (s.upper() for s in params.states):
            try:
                resp = httpx.get(
                    _BASE_URL,
                    params={
                        "key": self._api_key,
                        "op": "getSearch",
                        "state": state,
                        "query": query,
                        "year": year,
                    },
                    timeout=self._timeout,
                )
                if not resp.is_success:
                    errors.append(f"LegiScan error for {state}: {resp.status_code}")
                    continue
                data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("LegiScan request failed for %s: %s", state, exc)
                errors.append(f"LegiScan fetch error for {state}: {exc}")
                continue

            if data.get("status") == "ERROR":
                message = (data.get("alert") or {}).get("message", "unknown error")
                errors.append(f"LegiScan error for {state}: {message}")
                continue

            results = data.get("searchresult") or {}
            found = 0
            for key, bill in results.items():
                if key == "summary" or not isinstance(bill, dict) or not bill.get("bill_id"):
                    continue
                found += 1
                collector.add(normalize_bill(bill, state))
            logger.info("LegiScan %s: found %d bills", state, found)

        return SourceFetchResult(items=collector.items, errors=errors)
