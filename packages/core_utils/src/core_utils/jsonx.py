from __future__ import annotations
from typing import Any, Mapping

import orjson
from pydantic import BaseModel

__all__ = ["dumps", "loads", "sanitize"]


def sanitize(obj: Any) -> Any:
    """Recursively convert *obj* into something JSON-serialisable.

    - Exceptions → {"error": <Type>, "message": str(e)}
    - Pydantic models → model_dump(mode="json")
    - bytes → UTF-8 string (replacement on errors)
    - sets/tuples → lists
    - anything else → str(obj)
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, BaseException):
        return {"error": obj.__class__.__name__, "message": str(obj)}
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", "replace")
    if isinstance(obj, Mapping):
        return {str(k): sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [sanitize(v) for v in obj]
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return str(obj)


def dumps(obj: Any) -> str:
    """JSON dump to *str* with sorted keys; unknown types go through `sanitize`."""
    return orjson.dumps(obj, option=orjson.OPT_SORT_KEYS, default=sanitize).decode("utf-8")


def loads(data: str | bytes) -> Any:
    """JSON load from str/bytes; a leading UTF-8 BOM is tolerated."""
    b = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if b[:3] == b"\xef\xbb\xbf":
        b = b[3:]
    return orjson.loads(b)
