"""
core_utils.fastapi_bootstrap: one-call FastAPI wiring for services.

Applies request logging, the Prometheus endpoint and optional CORS.
Health endpoints are attached explicitly by each service via
``core_utils.health.attach_health_routes``.

Environment knobs (optional):
  CORS_ORIGINS: comma/space separated origins (e.g. "https://x, https://y").
"""
from __future__ import annotations
import re
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from core_logging.request_logging import attach_request_logging
from core_metrics.fastapi import attach_prometheus_endpoint

def _parse_origins(s: str | None) -> list[str]:
    if not s:
        return []
    return [p.strip() for p in re.split(r"[\s,]+", s) if p.strip()]

def setup_service(
    app: FastAPI,
    service_name: str,
    *,
    cors_origins: str | None = None,
    ttfb_label_route: bool = True,
    attach_metrics_endpoint: bool = True,
) -> None:
    """
    Apply standard wiring to `app`:

      • structured request logging + request metrics (prefix = service name)
      • Prometheus scrape endpoint at /metrics
      • CORS via starlette CORSMiddleware when origins are configured
    """
    attach_request_logging(app, service=service_name, metric_prefix=service_name, ttfb_label_route=ttfb_label_route)
    if attach_metrics_endpoint:
        attach_prometheus_endpoint(app)

    origins = _parse_origins(cors_origins)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

__all__ = ["setup_service"]
