"""Config package; settings and the source catalogue load on first attribute access."""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

# importing config.settings reads config.toml, so setup.py only touches config.version
_EXPORTS: Dict[str, Tuple[str, ...]] = {
    "config.settings": (
        "CONFIG",
        "DATABASE_CONFIG",
        "COLLECTION_CONFIG",
        "RATE_LIMITING_CONFIG",
        "QUALITY_CONFIG",
        "DEDUP_CONFIG",
        "PROGRESS_CONFIG",
        "SESSION_CONFIG",
        "ENRICHMENT_CONFIG",
        "SCHEDULER_CONFIG",
        "LOGGING_CONFIG",
        "ENVIRONMENT",
        "IS_PRODUCTION",
        "DEBUG",
        "TIMEZONE",
        "validate_config",
    ),
    "config.sources": (
        "ALL_SOURCES",
        "CHINA_SOURCES",
        "US_SOURCES",
        "UK_SOURCES",
        "get_active_sources",
        "get_sources_by_language",
        "get_sources_by_region",
        "list_regions",
        "validate_sources",
    ),
    "config.version": (
        "MIN_PYTHON_VERSION",
        "PROJECT_VERSION",
        "PYTHON_REQUIRES_SPECIFIER",
        "__version__",
    ),
}

_OWNER = {name: module for module, names in _EXPORTS.items() for name in names}

__all__ = sorted(_OWNER)


def _load(module_name: str) -> None:
    module = import_module(module_name)
    globals().update({name: getattr(module, name) for name in _EXPORTS[module_name]})


def __getattr__(name: str) -> Any:
    if name not in _OWNER:
        raise AttributeError(f"module 'config' has no attribute {name!r}")
    _load(_OWNER[name])
    return globals()[name]
