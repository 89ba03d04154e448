"""HUD ONAP/PIH page-poll adapter — scrapes notice PDF links from hud.gov."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from pathlib import PurePosixPath
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from legiswatch.sources.adapter import ItemCollector, SourceAdapter, today_utc
from legiswatch.sources.models import (
    Jurisdiction,
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
)
from legiswatch.sources.topics import (
    NAHASDA_REFINEMENTS,
    TopicRule,
    apply_rule,
    finalize,
)

logger = logging.getLogger(__name__)

PIH_NOTICES_URL = "https://www.hud.gov/program_offices/public_indian_housing/publications/notices"
ONAP_URL = "https://www.hud.gov/program_offices/public_indian_housing/ih"
_SITE_URL = "https://www.hud.gov"

_PIH_ID_RE = re.compile(r"PIH[-_ ]?\d{2,4}-\d+", re.IGNORECASE)

NAHASDA_KEYWORDS = (
    "nahasda",
    "native american",
    "indian housing",
    "ihbg",
    "tribal",
    "tribe",
    "title vi",
    "part 1000",
)

PIH_KEYWORDS = (
    "public housing",
    "section 8",
    "voucher",
    "housing choice",
    "admissions",
    "occupancy",
)

_NAHASDA_RULE = TopicRule(NAHASDA_KEYWORDS, ("nahasda_core",), NAHASDA_REFINEMENTS)
_PIH_RULE = TopicRule(PIH_KEYWORDS, ("hud_general", "landlord_tenant"))


@dataclass(frozen=True)
class HudNotice:
    """One notice link scraped from a HUD page."""

    notice_id: str
    title: str
    date: str
    url: str
    pdf_url: str
    notice_type: str  # "pih" or "onap"


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _is_recent(*texts: str) -> bool:
    year = today_utc().year
    wanted = (str(year), str(year - 1))
    return any(y in t for t in texts for y in wanted)


def parse_notice_links(html: str, page_url: str, notice_type: str) -> list[HudNotice]:
    """Extract notice PDF links from a HUD page.

    PIH links must point at a PIH document from the current or previous
    year. ONAP links are kept regardless of year.
    """
    notices: list[HudNotice] = []
    seen: set[str] = set()
    today = today_utc().isoformat()
    soup = BeautifulSoup(html, "lxml")

    for a in soup.select("a[href]"):
        href = a["href"].strip()
        path = urlsplit(href).path
        if not path.lower().endswith(".pdf"):
            continue
        link_text = _collapse(a.get_text())
        if notice_type == "pih":
            if "pih" not in href.lower() or not _is_recent(href, link_text):
                continue

        pdf_url = urljoin(_SITE_URL, href)
        id_match = _PIH_ID_RE.search(path) or _PIH_ID_RE.search(link_text)
        notice_id = id_match.group(0).upper() if id_match else PurePosixPath(path).stem
        if notice_id in seen:
            continue
        seen.add(notice_id)

        if notice_type == "pih":
            title = f"PIH Notice {notice_id}"
            if link_text and link_text.upper() != notice_id:
                title = f"{title}: {link_text}"
        else:
            title = link_text or notice_id

        notices.append(
            HudNotice(
                notice_id=notice_id,
                title=title,
                date=today,
                url=page_url,
                pdf_url=pdf_url,
                notice_type=notice_type,
            )
        )
    return notices


def classify_notice(notice: HudNotice) -> tuple[str, ...]:
    text = notice.title.lower()
    topics: list[str] = []
    apply_rule(_NAHASDA_RULE, text, topics)
    apply_rule(_PIH_RULE, text, topics)
    if notice.notice_type == "onap" and not topics:
        topics.append("tribal_adjacent")
    return finalize(topics)


def severity_for_notice(notice: HudNotice) -> str:
    title = notice.title.lower()
    if "final rule" in title or "effective" in title:
        return "high"
    if any(word in title for word in ("proposed", "comment", "guidance", "notice")):
        return "medium"
    return "low"


def normalize_notice(notice: HudNotice) -> NormalizedLegislationItem:
    return NormalizedLegislationItem(
        source="hudOnap",
        source_key=notice.notice_id,
        item_type="notice",
        jurisdiction=Jurisdiction(level="federal"),
        title=notice.title,
        status="PIH Notice" if notice.notice_type == "pih" else "ONAP Guidance",
        published_at=notice.date,
        url=notice.url,
        pdf_url=notice.pdf_url,
        topics=classify_notice(notice),
        severity=severity_for_notice(notice),
        cross_ref_key=f"HUD-{notice.notice_type.upper()}-{notice.notice_id}",
        raw=asdict(notice),
    )


class HudOnapAdapter(SourceAdapter):
    """Page-poll adapter for HUD PIH notices and ONAP guidance."""

    kind = "page_poll"
    default_poll_interval = 1440

    _PAGES = (
        (PIH_NOTICES_URL, "pih", "PIH notices"),
        (ONAP_URL, "onap", "ONAP"),
    )

    @property
    def source_id(self) -> str:
        return "hudOnap"

    @property
    def name(self) -> str:
        return "HUD ONAP/PIH Notices"

    def is_available(self) -> bool:
        return True

    def fetch(self, params: SourceFetchParams) -> SourceFetchResult:
        errors: list[str] = []
        collector = ItemCollector(params)

        for page_url, notice_type, label in self._PAGES:
            try:
                resp = httpx.get(page_url, timeout=self._timeout, follow_redirects=True)
                if not resp.is_success:
                    errors.append(f"HUD {label} page error: {resp.status_code}")
                    continue
                html = resp.text
            except httpx.HTTPError as exc:
                logger.warning("HUD %s page fetch failed: %s", label, exc)
                errors.append(f"HUD {label} fetch error: {exc}")
                continue

            for notice in parse_notice_links(html, page_url, notice_type):
                collector.add(normalize_notice(notice))

        logger.info("HUD ONAP/PIH: found %d notices", len(collector))
        return SourceFetchResult(items=collector.items, errors=errors)
