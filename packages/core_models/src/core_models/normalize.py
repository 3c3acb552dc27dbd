"""
Lenient coercions applied to backend payloads before typing them.

Each helper either returns the normalised value or raises ``ValueError``;
pydantic turns that into a validation error, which the response validator
reports as a contract violation.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from core_utils import jsonx

_TRUE = frozenset({"true", "1", "yes"})
_FALSE = frozenset({"false", "0", "no"})


def coerce_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v != 0
    if isinstance(v, str):
        s = v.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
    raise ValueError(f"cannot interpret {v!r} as a boolean")


def _item_text(v: Any) -> str:
    if isinstance(v, str):
        return v
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    return jsonx.dumps(v)


def coerce_str_list(v: Any) -> Optional[List[str]]:
    """Arrays, tuples and JSON-array strings become a list of strings."""
    if v is None:
        return None
    if isinstance(v, str):
        s = v.strip()
        if not s.startswith("["):
            raise ValueError("expected a list")
        v = jsonx.loads(s)
    if isinstance(v, (list, tuple)):
        return [_item_text(x) for x in v]
    raise ValueError("expected a list")


def coerce_text(v: Any) -> Any:
    """Scalars become text; ``None`` passes through for the field's own check."""
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (bool, int, float)):
        return _item_text(v)
    raise ValueError("expected a scalar value")


def coerce_mapping(v: Any) -> Optional[Dict[str, Any]]:
    if v is None or isinstance(v, dict):
        return v
    raise ValueError("expected an object")


__all__ = ["coerce_bool", "coerce_str_list", "coerce_text", "coerce_mapping"]
