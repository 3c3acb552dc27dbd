from __future__ import annotations

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest


def attach_prometheus_endpoint(app: FastAPI, path: str = "/metrics") -> None:
    """Expose the default Prometheus registry at *path*; registering twice is a no-op."""
    name = f"core_metrics:{path}"
    if any(getattr(r, "name", None) == name for r in app.router.routes):
        return

    @app.get(path, include_in_schema=False, name=name)
    def _scrape() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
