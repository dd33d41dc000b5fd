"""
onboarding_config -- single public entrypoint for onboarding configuration.

Responsibility:
    Provides the ONLY way to obtain the label catalog at runtime through
    ``get_active_config()``.  Engines and services never read
    ``catalog.yaml`` themselves.

Architecture position:
    Configuration -- sits above ``onboarding_kernel`` and below
    ``onboarding_engines`` / ``onboarding_services``.  The kernel MUST
    NEVER import from ``onboarding_config``.

Invariants enforced:
    - Single entrypoint: all runtime labels flow through ``get_active_config()``.
    - Every mapping in the returned catalog is total over its enum.

Failure modes:
    - ``FileNotFoundError`` -- the catalog path does not exist.
    - ``ValueError`` -- a mapping is partial or names an unknown key.

Audit relevance:
    Every load emits an ``ONBOARDING_CONFIG_TRACE`` log entry with the
    catalog version and checksum.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from onboarding_config.loader import load_catalog
from onboarding_config.schema import LabelCatalog

_logger = logging.getLogger("onboarding_kernel.config")

_DEFAULT_CATALOG = Path(__file__).parent / "catalog.yaml"

_cached: LabelCatalog | None = None
_lock = threading.Lock()


def get_active_config(path: Path | None = None) -> LabelCatalog:
    """The ONLY public configuration entrypoint.

    The default catalog is loaded once per process and cached; an explicit
    ``path`` is always loaded fresh (tests, alternate deployments).

    Raises:
        FileNotFoundError: If the catalog file is missing.
        ValueError: If the catalog fails validation.
    """
    global _cached
    if path is None:
        with _lock:
            if _cached is None:
                _cached = _load(_DEFAULT_CATALOG)
            return _cached
    return _load(Path(path))


def _load(path: Path) -> LabelCatalog:
    catalog = load_catalog(path)
    _logger.info(
        "ONBOARDING_CONFIG_TRACE",
        extra={
            "trace_type": "ONBOARDING_CONFIG_TRACE",
            "config_path": str(path),
            "config_version": catalog.version,
            "checksum": catalog.checksum,
            "identity_subtype_count": len(catalog.identity_subtypes),
        },
    )
    return catalog


def clear_config_cache() -> None:
    """Forget the cached default catalog.  FOR TESTING ONLY."""
    global _cached
    with _lock:
        _cached = None


__all__ = [
    "LabelCatalog",
    "clear_config_cache",
    "get_active_config",
]
