"""Adapter registry — maps source ids to adapter instances."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from legiswatch.sources.adapter import SourceAdapter

logger = logging.getLogger(__name__)

_REGISTRY: dict[str, SourceAdapter] = {}


class DuplicateAdapterError(ValueError):
    """Two adapters claimed the same source id."""


def register_adapter(adapter: SourceAdapter, replace: bool = False) -> None:
    """Register an adapter instance under its ``source_id``.

    A second registration for the same id raises DuplicateAdapterError
    unless ``replace`` is set, in which case the new adapter wins and a
    warning is logged.
    """
    source_id = adapter.source_id
    if source_id in _REGISTRY:
        if not replace:
            raise DuplicateAdapterError(f"Adapter '{source_id}' is already registered")
        logger.warning("Adapter %s already registered, replacing", source_id)
    _REGISTRY[source_id] = adapter


def get_adapter(source_id: str) -> SourceAdapter | None:
    """Look up an adapter by source id. Returns None if not found."""
    return _REGISTRY.get(source_id)


def get_all_adapters() -> list[SourceAdapter]:
    """Return all registered adapters in registration order."""
    return list(_REGISTRY.values())


def get_enabled_adapters(source_ids: Iterable[str]) -> list[SourceAdapter]:
    """Return adapters for the given ids, in that order. Unknown ids are skipped."""
    return [_REGISTRY[sid] for sid in source_ids if sid in _REGISTRY]


def get_available_adapters() -> list[SourceAdapter]:
    """Return the registered adapters whose ``is_available()`` reports True.

    An adapter whose availability check raises is logged and excluded.
    """
    available: list[SourceAdapter] = []
    for adapter in _REGISTRY.values():
        try:
            if adapter.is_available():
                available.append(adapter)
        except Exception:
            logger.warning(
                "Adapter %s availability check failed", adapter.source_id, exc_info=True
            )
    return available


def registered_ids() -> list[str]:
    """Return a sorted list of all registered source ids."""
    return sorted(_REGISTRY)


def clear_registry() -> None:
    """Remove every registered adapter."""
    _REGISTRY.clear()
