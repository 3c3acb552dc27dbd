import hashlib, uuid
from typing import Any, Optional, Union
from urllib.parse import parse_qsl

import orjson


def _canon_json_or_text(raw: Union[bytes, str]) -> str:
    data = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
    if data.lstrip()[:1] in (b"{", b"["):
        try:
            return orjson.dumps(orjson.loads(data), option=orjson.OPT_SORT_KEYS).decode()
        except orjson.JSONDecodeError:
            pass
    return data.decode("utf-8", "replace")


def compute_request_id(
    path: str,
    query: Optional[Union[str, bytes, Any]],
    body: Optional[Union[bytes, bytearray, str, Any]],
) -> str:
    """
    Deterministic 16-hex request id from (path, query, body).

    Used when a failure happens before the request-logging middleware bound an
    id (e.g. body parsing errors), so the same malformed request always maps
    to the same id in logs and in the error envelope.

    * Query strings are parsed with blank values kept and rendered sorted.
    * JSON bodies are re-dumped with sorted keys; ``{}`` equals an empty body.
    """
    if query in (None, "", b""):
        q = ""
    else:
        qs = query.decode("utf-8", "replace") if isinstance(query, (bytes, bytearray)) else str(query)
        pairs = sorted(parse_qsl(qs.lstrip("?"), keep_blank_values=True))
        q = "&".join(f"{k}={v}" for k, v in pairs)

    if body is None:
        b = ""
    elif isinstance(body, (bytes, bytearray, memoryview, str)):
        b = _canon_json_or_text(bytes(body) if isinstance(body, memoryview) else body)
    else:
        try:
            b = orjson.dumps(body, option=orjson.OPT_SORT_KEYS).decode()
        except TypeError:
            b = str(body)
    if b == "{}":
        b = ""

    raw = f"{path}?{q}#{b}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


def generate_request_id() -> str:
    """
    Non-deterministic 16-hex id for logging/health/exception paths.
    Kept short for log readability and parity with compute_request_id().
    """
    return uuid.uuid4().hex[:16]
