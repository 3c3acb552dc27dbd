import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import httpx

from core_config import Settings, get_settings
from core_config.constants import timeout_seconds
from core_logging import get_logger, log_stage, current_request_id

# Module-level logger for this package
logger = get_logger("core_http")

_shared_client: httpx.AsyncClient | None = None

def _inject_headers(headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Merge caller headers with process context (request-id).
    Never mutates the input dict.
    """
    base: Dict[str, str] = {"user-agent": "matrix-gateway/1"}
    rid = current_request_id()
    if rid:
        base["x-request-id"] = rid
    if headers:
        base.update(headers)
    return base

def _build_timeout(seconds: float, connect_seconds: float | None = None) -> httpx.Timeout:
    # Read dominates; connect is capped by its own budget
    connect = min(seconds, connect_seconds if connect_seconds is not None else seconds)
    return httpx.Timeout(connect=connect, read=seconds, write=seconds, pool=seconds)

def get_http_client(
    *, timeout_ms: Optional[int] = None, settings: Optional[Settings] = None
) -> httpx.AsyncClient:
    """
    Return a process-wide ``httpx.AsyncClient`` with pooled connections.

    The client is shared across concurrent requests and **must not be closed**
    by callers; use :func:`aclose_http_client` on shutdown.  A closed client is
    replaced on the next call.  *settings* (read only when a client is
    built) supplies the pool limits and default timeouts.
    """
    global _shared_client
    if _shared_client is None or _shared_client.is_closed:
        s = settings or get_settings()
        base_sec = timeout_seconds(timeout_ms if timeout_ms is not None else s.backend_timeout_ms)
        if _shared_client is not None:
            log_stage(
                logger, "http.client", "recreating_shared_client",
                timeout_sec=base_sec, request_id=(current_request_id() or "startup"),
            )
        _shared_client = httpx.AsyncClient(
            timeout=_build_timeout(base_sec, s.backend_connect_timeout_ms / 1000.0),
            limits=httpx.Limits(
                max_keepalive_connections=s.http_max_keepalive,
                max_connections=s.http_max_connections,
                keepalive_expiry=s.http_keepalive_expiry,
            ),
        )
    return _shared_client

async def aclose_http_client() -> None:
    global _shared_client
    if _shared_client is not None and not _shared_client.is_closed:
        await _shared_client.aclose()
    _shared_client = None

async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    json: Any | None = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout_s: float | None = None,
) -> httpx.Response:
    """
    Issue exactly one request and return the response whatever its status.

    Timeouts and connection failures propagate as ``httpx.RequestError``;
    status interpretation is left to the caller.
    """
    parts = urlsplit(url)
    op = f"{method.upper()} {(parts.hostname or '')}{parts.path or '/'}"
    log_stage(
        logger, "http.client", "http.client.request",
        request_id=current_request_id(),
        op=op,
        http={"method": method.upper(), "host": parts.hostname or "", "target": parts.path or "/"},
        param_keys=sorted((params or {}).keys()),
    )
    t0 = time.perf_counter()
    kwargs: Dict[str, Any] = {"json": json, "params": params, "headers": _inject_headers(headers)}
    if timeout_s is not None:
        kwargs["timeout"] = _build_timeout(timeout_s)
    resp = await client.request(method.upper(), url, **kwargs)
    log_stage(
        logger, "http.client", "http.client.response",
        request_id=current_request_id(),
        op=op,
        http={"method": method.upper(), "target": parts.path or "/", "status_code": resp.status_code},
        latency_ms=int((time.perf_counter() - t0) * 1000.0),
    )
    return resp
