"""Canonical exercise catalog (lazy-loaded) and the process-wide matcher built over it."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .fingerprint import FingerprintMatcher

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_CATALOG_PATH = _DATA_DIR / "exercise_catalog.json"

_catalog: tuple[str, ...] | None = None
_matcher: FingerprintMatcher | None = None


def catalog_path() -> Path:
    return Path(os.environ.get("LIFTLOG_CATALOG_PATH", str(DEFAULT_CATALOG_PATH)))


def load_catalog(path: Path | None = None) -> tuple[str, ...]:
    """
    Ordered canonical exercise names from a JSON array. Order is kept: it decides
    fingerprint collisions. The default catalog is read once per process.
    """
    global _catalog
    if path is None and _catalog is not None:
        return _catalog
    source = path or catalog_path()
    if not source.exists():
        logger.warning("Exercise catalog not found at %s", source)
        names: tuple[str, ...] = ()
    else:
        with open(source, encoding="utf-8") as f:
            names = tuple(str(n) for n in json.load(f) if str(n).strip())
    if path is None:
        _catalog = names
    return names


def get_default_matcher() -> FingerprintMatcher:
    global _matcher
    if _matcher is None:
        _matcher = FingerprintMatcher(load_catalog())
    return _matcher


def reset_catalog_cache() -> None:
    """Forget the loaded catalog and matcher (catalog file changed)."""
    global _catalog, _matcher
    _catalog = None
    _matcher = None
