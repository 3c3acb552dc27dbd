"""
core_utils.health: liveness and readiness routes for FastAPI services.
"""

import asyncio
from typing import Awaitable, Callable, Mapping, Union

from fastapi import APIRouter, FastAPI
from fastapi.responses import JSONResponse

# A probe returns a bool or a JSON body, directly or awaitably.
Probe = Callable[[], Union[bool, dict, Awaitable[Union[bool, dict]]]]


async def _probe(fn: Probe) -> Union[bool, dict]:
    try:
        res = fn()
        if asyncio.iscoroutine(res):
            res = await res
        return res
    except Exception:  # a crashing probe reports "not healthy"
        return False


def attach_health_routes(app: FastAPI, *, checks: Mapping[str, Probe]) -> None:
    """
    Mount ``GET /healthz`` (``checks["liveness"]``) and ``GET /readyz``
    (``checks["readiness"]``).

    A dict result is returned as the body.  ``/readyz`` answers 503 when the
    probe returns False or a dict whose ``ready`` is falsy; a missing probe
    counts as healthy.
    """
    router = APIRouter()

    @router.get("/healthz")
    async def _healthz():
        if "liveness" not in checks:
            return {"status": "ok"}
        res = await _probe(checks["liveness"])
        return res if isinstance(res, dict) else {"status": "ok" if res else "fail"}

    @router.get("/readyz")
    async def _readyz():
        if "readiness" not in checks:
            return {"ready": True}
        res = await _probe(checks["readiness"])
        if isinstance(res, dict):
            body, ready = res, bool(res.get("ready", True))
        else:
            body, ready = {"ready": bool(res)}, bool(res)
        return JSONResponse(body, status_code=200 if ready else 503)

    app.include_router(router)


__all__ = ["attach_health_routes"]
