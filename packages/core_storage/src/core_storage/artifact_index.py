"""
Pick the current artifact out of a container listing.

Resolution order:
  1. an explicit override, returned unchanged;
  2. the name with the greatest trailing timestamp (ties → greatest name);
  3. the alias artifact (``*-latest<ext>``);
  4. the lexicographically greatest name with the extension;
  5. the configured fallback name.

Resolution never raises: a missing or malformed listing resolves to the
fallback.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Optional

from core_config.constants import (
    ARTIFACT_ALIAS_MARKER,
    ARTIFACT_EXTENSION,
    FALLBACK_ARTIFACT,
    LISTING_WRAPPER_KEYS,
)
from core_logging import get_logger, log_stage
from core_storage.artifact_names import extract_trailing_timestamp

logger = get_logger("core_storage.artifact_index")


def parse_listing(payload: Any) -> List[str]:
    """
    Normalise a backend listing body into a list of names.

    Accepts a JSON array, or an object wrapping the array under one of
    ``blobs`` / ``artifacts`` / ``names``.  Entries may be strings or objects
    carrying a ``name``; anything else is skipped.
    """
    items: Any = payload
    if isinstance(payload, dict):
        items = next((payload[k] for k in LISTING_WRAPPER_KEYS if isinstance(payload.get(k), list)), None)
    if not isinstance(items, list):
        return []
    names: List[str] = []
    for it in items:
        if isinstance(it, dict):
            it = it.get("name")
        if isinstance(it, str) and it.strip():
            names.append(it.strip())
    return names


def resolve_latest(
    listing: Optional[Iterable[Any]],
    explicit_override: Optional[str] = None,
    *,
    extension: str = ARTIFACT_EXTENSION,
    alias_marker: str = ARTIFACT_ALIAS_MARKER,
    fallback: str = FALLBACK_ARTIFACT,
) -> str:
    """Return the artifact name requests should target; see module docstring."""
    if isinstance(explicit_override, str) and explicit_override.strip():
        return explicit_override

    names = list(listing) if isinstance(listing, (list, tuple, set, frozenset)) else parse_listing(listing)
    candidates = sorted({n for n in names if isinstance(n, str) and n.endswith(extension)})

    stamped = [(ts, n) for n in candidates if (ts := extract_trailing_timestamp(n)) is not None]
    if stamped:
        return max(stamped)[1]

    alias_suffix = f"{alias_marker}{extension}"
    aliases = [n for n in candidates if n.endswith(alias_suffix)]
    if aliases:
        return aliases[-1]

    if candidates:
        log_stage(logger, "resolve", "artifact_unversioned_pick", artifact=candidates[-1], count=len(candidates))
        return candidates[-1]

    log_stage(logger, "resolve", "artifact_fallback", artifact=fallback)
    return fallback


__all__ = ["parse_listing", "resolve_latest"]
