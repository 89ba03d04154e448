"""Flat keyword topic classification.

Each adapter describes its relevance rules as an ordered list of
``TopicRule``. A rule fires when any of its keywords is a substring of the
lowercased search text; its refinements are only checked once the rule has
fired. Matching is order-independent apart from the order tags are reported
in, and every matched tag is kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

NOT_RELEVANT = "not_relevant"


@dataclass(frozen=True)
class Refinement:
    """Second-pass subtag, checked only when the parent rule matched."""

    tag: str
    keywords: tuple[str, ...]
    requires: tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        return any(kw in text for kw in self.keywords) and all(
            word in text for word in self.requires
        )


@dataclass(frozen=True)
class TopicRule:
    """A keyword list and the tags it contributes."""

    keywords: tuple[str, ...]
    tags: tuple[str, ...]
    refinements: tuple[Refinement, ...] = ()

    def matches(self, text: str) -> bool:
        return any(kw in text for kw in self.keywords)


LANDLORD_TENANT_REFINEMENTS = (
    Refinement("fair_housing", ("fair housing",)),
    Refinement("security_deposit", ("security deposit",)),
    Refinement("eviction", ("eviction",)),
)

NAHASDA_REFINEMENTS = (
    Refinement("ihbg", ("ihbg", "block grant")),
    Refinement("environmental", ("environmental",)),
    Refinement("procurement", ("procurement",)),
    Refinement("income_limits", ("income",), requires=("limit",)),
)

LANDLORD_TENANT_KEYWORDS = (
    "landlord",
    "tenant",
    "rental",
    "eviction",
    "lease",
    "housing",
    "security deposit",
)

LANDLORD_TENANT_RULE = TopicRule(
    keywords=LANDLORD_TENANT_KEYWORDS,
    tags=("landlord_tenant",),
    refinements=LANDLORD_TENANT_REFINEMENTS,
)


def build_search_text(*parts: str | None) -> str:
    """Join the non-empty descriptive fields of an item into one lowercased buffer."""
    return " ".join(p for p in parts if p).lower()


def _add(topics: list[str], tag: str) -> None:
    if tag not in topics:
        topics.append(tag)


def apply_rule(rule: TopicRule, text: str, topics: list[str], force: bool = False) -> bool:
    """Add ``rule``'s tags and matching refinements to ``topics`` in place.

    ``text`` must already be lowercased. ``force`` fires the rule even when
    none of its keywords matched, for sources that have a non-text signal
    (such as a CFR part reference). Returns whether the rule fired.
    """
    if not (force or rule.matches(text)):
        return False
    for tag in rule.tags:
        _add(topics, tag)
    for refinement in rule.refinements:
        if refinement.matches(text):
            _add(topics, refinement.tag)
    return True


def classify(text: str, rules: Sequence[TopicRule]) -> list[str]:
    """Return every tag whose rule (or refinement) matches ``text``.

    Returns an empty list when nothing matched; callers decide whether a
    source-specific fallback applies before calling ``finalize``.
    """
    text = text.lower()
    topics: list[str] = []
    for rule in rules:
        apply_rule(rule, text, topics)
    return topics


def finalize(topics: Iterable[str]) -> tuple[str, ...]:
    """Freeze a tag list, substituting ``not_relevant`` when it is empty."""
    result = tuple(topics)
    return result if result else (NOT_RELEVANT,)


def is_relevant(topics: Iterable[str]) -> bool:
    """False when the item carries the not_relevant tag."""
    return NOT_RELEVANT not in topics


def matches_topic_filter(topics: Iterable[str], wanted: Iterable[str] | None) -> bool:
    """True when no filter is given or the item shares at least one topic with it."""
    wanted = list(wanted or [])
    if not wanted:
        return True
    return any(t in wanted for t in topics)
