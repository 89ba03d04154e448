"""Legislative source adapters, normalized item schema, and adapter registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from legiswatch.sources.adapter import (
    ItemCollector,
    MissingStatesError,
    SourceAdapter,
    SourceConfigurationError,
    SourceError,
)
from legiswatch.sources.congress_gov import CongressGovAdapter
from legiswatch.sources.court_listener import CourtListenerAdapter
from legiswatch.sources.ecfr import EcfrAdapter
from legiswatch.sources.federal_register import FederalRegisterAdapter
from legiswatch.sources.hud_onap import HudOnapAdapter
from legiswatch.sources.legiscan import LegiScanAdapter
from legiswatch.sources.models import (
    CfrReference,
    Jurisdiction,
    NormalizedLegislationItem,
    SourceFetchParams,
    SourceFetchResult,
    validate_item,
)
from legiswatch.sources.plural_policy import PluralPolicyAdapter, shared_throttle
from legiswatch.sources.registry import (
    DuplicateAdapterError,
    clear_registry,
    get_adapter,
    get_all_adapters,
    get_available_adapters,
    get_enabled_adapters,
    register_adapter,
)
from legiswatch.sources.utah_glen import UtahGlenAdapter

if TYPE_CHECKING:
    from legiswatch.config import Config

logger = logging.getLogger(__name__)

__all__ = [
    "CfrReference",
    "DuplicateAdapterError",
    "ItemCollector",
    "Jurisdiction",
    "MissingStatesError",
    "NormalizedLegislationItem",
    "SourceAdapter",
    "SourceConfigurationError",
    "SourceError",
    "SourceFetchParams",
    "SourceFetchResult",
    "clear_registry",
    "get_adapter",
    "get_all_adapters",
    "get_available_adapters",
    "get_enabled_adapters",
    "init_adapters",
    "register_adapter",
    "validate_item",
]


def build_adapters(config: Config) -> list[SourceAdapter]:
    """Construct one instance of every adapter from configuration."""
    timeout = config.http_timeout_seconds
    return [
        CongressGovAdapter(config.congress_gov_api_key, timeout),
        LegiScanAdapter(config.legiscan_api_key, timeout),
        PluralPolicyAdapter(
            config.plural_policy_api_key,
            timeout,
            on_rate_limit=config.plural_policy_on_rate_limit,
            retry_backoff=config.plural_policy_retry_backoff_seconds,
            throttle=shared_throttle(config.plural_policy_min_interval_seconds),
        ),
        CourtListenerAdapter(config.courtlistener_api_key, timeout),
        EcfrAdapter(timeout),
        FederalRegisterAdapter(config.data_gov_api_key, timeout),
        HudOnapAdapter(timeout),
        UtahGlenAdapter(timeout),
    ]


def init_adapters(config: Config, replace: bool = False) -> list[SourceAdapter]:
    """Build every adapter from ``config`` and register it.

    Call once at process start. Pass ``replace=True`` to re-initialize
    after the configuration changed.
    """
    adapters = build_adapters(config)
    for adapter in adapters:
        register_adapter(adapter, replace=replace)
    logger.info(
        "Registered %d source adapters (%d available)",
        len(adapters),
        len(get_available_adapters()),
    )
    return adapters
