"""Plural Policy (Open States v3) source adapter, with a process-wide request throttle."""

from __future__ import annotations

import logging
import re
import threading
import time

import httpx

from legiswatch.sources.adapter import (
    ItemCollector,
    MissingStatesError,
    SourceAdapter,
    resolve_since,
    today_utc,
)
from legiswatch.sources.models import (
    Jurisdiction,
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
)
from legiswatch.sources.topics import (
    LANDLORD_TENANT_RULE,
    build_search_text,
    classify,
    finalize,
)

logger = logging.getLogger(__name__)

_BASE_URL = "https://v3.openstates.org"
_PER_PAGE = 20
_TERMS_PER_STATE = 2

SEARCH_TERMS = ("landlord tenant", "eviction", "rental property", "security deposit")

_STATE_CODE_RE = re.compile(r"^[A-Z]{2}$")
_STATE_IN_JURISDICTION_RE = re.compile(r"state:(\w+)")
_YEAR_RE = re.compile(r"\d{4}")


class RequestThrottle:
    """Minimum-interval gate between outgoing requests.

    Shared across adapter instances in one process, so the interval holds
    even when several instances poll in the same run.
    """

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval
        self._lock = threading.Lock()
        self._last_request = 0.0

    def wait(self) -> None:
        with self._lock:
            elapsed = time.monotonic() - self._last_request
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self._last_request = time.monotonic()


_SHARED_THROTTLE = RequestThrottle(1.1)


def shared_throttle(min_interval: float | None = None) -> RequestThrottle:
    """Return the process-wide throttle, optionally updating its interval."""
    if min_interval is not None:
        _SHARED_THROTTLE.min_interval = min_interval
    return _SHARED_THROTTLE


def jurisdiction_for_state(state: str) -> str | None:
    """Open Civic Data jurisdiction id for a two-letter state code."""
    if not _STATE_CODE_RE.match(state):
        return None
    return f"ocd-jurisdiction/country:us/state:{state.lower()}/government"


def _state_from_jurisdiction(jurisdiction_id: str) -> str | None:
    match = _STATE_IN_JURISDICTION_RE.search(jurisdiction_id or "")
    return match.group(1).upper() if match else None


def classify_bill(bill: dict) -> tuple[str, ...]:
    text = build_search_text(
        bill.get("title"),
        " ".join(a.get("abstract", "") for a in bill.get("abstracts") or []),
        " ".join(bill.get("subject") or []),
    )
    return finalize(classify(text, (LANDLORD_TENANT_RULE,)))


def normalize_bill(bill: dict) -> NormalizedLegislationItem:
    """Map an Open States bill onto the normalized schema."""
    state = _state_from_jurisdiction((bill.get("jurisdiction") or {}).get("id", ""))
    abstracts = bill.get("abstracts") or []
    actions = bill.get("actions") or []
    sources = bill.get("sources") or []
    year_match = _YEAR_RE.search(str(bill.get("session", "")))
    session_year = int(year_match.group(0)) if year_match else today_utc().year

    status = bill.get("latest_action_description")
    if not status and actions:
        status = actions[-1].get("description")

    return NormalizedLegislationItem(
        source="pluralPolicy",
        source_key=bill["id"],
        item_type="bill",
        jurisdiction=Jurisdiction(level="state", state=state),
        title=(bill.get("title") or "").strip(),
        summary=abstracts[0].get("abstract") if abstracts else None,
        status=status or "Unknown",
        introduced_date=bill.get("first_action_date"),
        updated_at=bill.get("updated_at"),
        url=bill.get("openstates_url") or (sources[0].get("url") if sources else None),
        topics=classify_bill(bill),
        severity="medium",
        cross_ref_key=f"{state}-{bill.get('identifier')}-{session_year}" if state else None,
        raw=bill,
    )


class PluralPolicyAdapter(SourceAdapter):
    """Adapter for state legislation via the Plural Policy (Open States) API.

    On HTTP 429 the ``on_rate_limit`` policy decides what happens:
    ``"abort"`` treats it as the daily quota being exhausted and stops the
    run; ``"retry"`` waits ``retry_backoff`` seconds and tries once more
    before aborting the same way.
    """

    default_poll_interval = 1440

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 30.0,
        on_rate_limit: str = "abort",
        retry_backoff: float = 60.0,
        throttle: RequestThrottle | None = None,
    ) -> None:
        super().__init__(timeout)
        self._api_key = api_key
        self._on_rate_limit = on_rate_limit
        self._retry_backoff = retry_backoff
        self._throttle = throttle or shared_throttle()

    @property
    def source_id(self) -> str:
        return "pluralPolicy"

    @property
    def name(self) -> str:
        return "Plural Policy (Open States)"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def _throttled_get(self, query: dict) -> httpx.Response:
        self._throttle.wait()
        return httpx.get(
            f"{_BASE_URL}/bills",
            params=query,
            headers={"X-API-KEY": self._api_key or "", "Accept": "application/json"},
            timeout=self._timeout,
        )

    def _get(self, query: dict) -> httpx.Response:
        resp = self._throttled_get(query)
        if resp.status_code == 429 and self._on_rate_limit == "retry":
            logger.warning(
                "Plural Policy rate limit exceeded, retrying in %.0fs", self._retry_backoff
            )
            time.sleep(self._retry_backoff)
            resp = self._throttled_get(query)
        return resp

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        # No fallback state list: monitored states come only from the sources config.
        if not params.states:
            raise MissingStatesError(
                "Plural Policy requires states to be provided via params.states"
            )

        errors: list[str] = []
        if not self._api_key:
            errors.append("PLURAL_POLICY_API_KEY not configured")
            return SourceFetchResult(errors=errors)

        collector = ItemCollector(params)
        states = [s.upper() for s in params.states]
        updated_since = resolve_since(params.since, 0).isoformat() if params.since else None

        for index, state in enumerate(states):
            jurisdiction = jurisdiction_for_state(state)
            if jurisdiction is None:
                errors.append(f"Plural Policy: unsupported state code '{state}'")
                continue

            rate_limited = False
            for term in SEARCH_TERMS[:_TERMS_PER_STATE]:
                query: dict = {
                    "jurisdiction": jurisdiction,
                    "q": term,
                    "per_page": _PER_PAGE,
                    "include": ["abstracts", "actions", "sources"],
                }
                if updated_since:
                    query["updated_since"] = updated_since
                try:
                    resp = self._get(query)
                    if resp.status_code == 429:
                        rate_limited = True
                        break
                    if not resp.is_success:
                        errors.append(
                            f'Plural Policy error for {state} "{term}": {resp.status_code}'
                        )
                        continue
                    data = resp.json()
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning("Plural Policy request failed for %s: %s", state, exc)
                    errors.append(f"Plural Policy fetch error for {state}: {exc}")
                    continue

                for bill in data.get("results") or []:
                    collector.add(normalize_bill(bill))

            if rate_limited:
                skipped = len(states) - index
                logger.warning(
                    "Plural Policy daily quota exhausted at %s; skipping %d state(s)",
                    state, skipped,
                )
                errors.append(
                    f"Plural Policy rate limit (HTTP 429) at {state}: daily quota "
                    f"exhausted, {skipped} state(s) not fetched this run"
                )
                break

            logger.info("Plural Policy %s: processed", state)

        return SourceFetchResult(items=collector.items, errors=errors)
