from __future__ import annotations

import time
from typing import Tuple

from fastapi import FastAPI, Request

import core_metrics
from core_logging import (
    bind_request_id,
    emit_request_error_summary,
    emit_request_summary,
    get_logger,
    log_stage,
)
from core_utils.ids import generate_request_id

# Probe endpoints are counted in metrics but not logged.
_QUIET_PATHS: Tuple[str, ...] = ("/healthz", "/readyz", "/metrics")


def _route_label(request: Request, fallback: str) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or fallback


def attach_request_logging(
    app: FastAPI,
    *,
    service: str,
    metric_prefix: str,
    ttfb_label_route: bool = False,
    quiet_paths: Tuple[str, ...] = _QUIET_PATHS,
) -> None:
    """
    Per-request middleware.

    Binds the request id (incoming ``x-request-id`` or a fresh one) for the
    whole request, echoes it on the response, writes ``request_start`` /
    ``request_end`` plus the error rollup and request summary, and records:

      - ``{metric_prefix}_ttfb_seconds`` histogram (optionally per route)
      - ``{metric_prefix}_http_requests_total`` counter by method and code
      - ``{metric_prefix}_http_5xx_total`` counter
    """
    logger = get_logger(service)

    @app.middleware("http")
    async def _request_logger(request: Request, call_next):
        path = str(request.url.path or "")
        loud = not any(path.endswith(p) for p in quiet_paths)

        req_id = request.headers.get("x-request-id") or generate_request_id()
        bind_request_id(req_id)
        request.state.request_id = req_id

        if loud:
            log_stage(logger, "request", "request_start", request_id=req_id,
                      method=request.method, path=path)
        t0 = time.perf_counter()
        resp = await call_next(request)
        elapsed = time.perf_counter() - t0
        resp.headers["x-request-id"] = req_id

        labels = {"route": _route_label(request, path)} if ttfb_label_route else {}
        core_metrics.histogram(f"{metric_prefix}_ttfb_seconds", elapsed, **labels)
        core_metrics.counter(f"{metric_prefix}_http_requests_total", 1,
                             method=request.method, code=str(resp.status_code))
        if resp.status_code >= 500:
            core_metrics.counter(f"{metric_prefix}_http_5xx_total", 1)

        if loud:
            log_stage(logger, "request", "request_end", request_id=req_id,
                      method=request.method, path=path, status_code=resp.status_code,
                      latency_ms=int(elapsed * 1000.0))
            emit_request_error_summary(logger, service=service)
            emit_request_summary(logger, service=service)
        return resp
