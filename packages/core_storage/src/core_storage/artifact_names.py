"""
Artifact name grammar: ``<base>[-YYYYMMDD-HHMMSS]…<extension>``.

Timestamps sit immediately before the extension (or at the end of a name
that has none).  Several stamps may be chained by repeated re-versioning;
the one nearest the extension is the effective version.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from core_config.constants import (
    COMPACT_TIMESTAMP_FORMAT,
    DEFAULT_BASE_NAME,
    TIMESTAMP_FORMAT,
    TIMESTAMP_TOKEN_RE,
)

# Anchored before the final ".ext", or at end of string when there is no extension.
_END = r"(?=(?:\.[^.]*)?$)"
_TRAILING_TS = re.compile(rf"({TIMESTAMP_TOKEN_RE}){_END}")
_TRAILING_STAMPS = re.compile(rf"(?:-{TIMESTAMP_TOKEN_RE})+{_END}")


def _is_real_instant(compact: str) -> bool:
    try:
        datetime.strptime(compact, COMPACT_TIMESTAMP_FORMAT)
    except ValueError:
        return False
    return True


def extract_trailing_timestamp(name: Optional[str]) -> Optional[str]:
    """
    Return the trailing timestamp of *name* as a 14-digit sortable token.

    ``"m-20250101-010101.b64"`` → ``"20250101010101"``.  Names without a
    trailing token, and tokens that do not name a real calendar instant
    (month 13, hour 25, …), yield ``None``.
    """
    if not name:
        return None
    m = _TRAILING_TS.search(name)
    if m is None:
        return None
    compact = m.group(1).replace("-", "")
    return compact if _is_real_instant(compact) else None


def format_timestamp(now: Optional[datetime] = None) -> str:
    """Render *now* (default: current UTC time) as ``YYYYMMDD-HHMMSS``."""
    return (now or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)


def strip_timestamps(name: Optional[str]) -> str:
    """Remove every chained ``-YYYYMMDD-HHMMSS`` group before the extension in one pass."""
    return _TRAILING_STAMPS.sub("", name or "")


def _split_extension(name: str) -> tuple[str, str]:
    dot = name.rfind(".")
    if dot < 0:
        return name, ""
    return name[:dot], name[dot:]


def next_versioned_name(
    base: Optional[str],
    now: Optional[datetime] = None,
    *,
    default_base: str = DEFAULT_BASE_NAME,
) -> str:
    """
    Produce a fresh versioned name from *base*: existing stamps are stripped,
    then exactly one new stamp is inserted before the extension.

    When nothing usable remains of the stem, *default_base* is versioned
    instead.  For any base with a non-empty stem,
    ``strip_timestamps(next_versioned_name(b)) == strip_timestamps(b)``.
    """
    normalized = strip_timestamps((base or "").strip())
    stem, ext = _split_extension(normalized)
    if not stem:
        stem, ext = _split_extension(strip_timestamps(default_base))
    return f"{stem}-{format_timestamp(now)}{ext}"


__all__ = [
    "extract_trailing_timestamp",
    "format_timestamp",
    "strip_timestamps",
    "next_versioned_name",
]
