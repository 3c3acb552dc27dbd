from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from pydantic import BaseModel, ConfigDict

from core_config import get_settings
from core_http.client import aclose_http_client
from core_http.errors import attach_standard_error_handlers, raise_http_error
from core_logging import get_logger, log_stage
from core_logging.error_codes import ErrorCode
from core_models import OperationKind
from core_utils.fastapi_bootstrap import setup_service
from core_utils.health import attach_health_routes
from core_utils.identity import claims_from_headers

from .errors import ValidationFailed
from .service import MatrixService, ProxyOutcome

# ---- Configuration & globals ----------------------------------------------
settings = get_settings()
logger = get_logger("gateway")

_service: MatrixService | None = None


def get_service() -> MatrixService:
    global _service
    if _service is None:
        _service = MatrixService(settings)
    return _service


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "unknown"


async def get_principal(request: Request) -> Dict[str, str]:
    """Identity claims forwarded by the ingress; 401 when required and absent."""
    claims = claims_from_headers(request.headers)
    if not claims and not settings.auth_disabled:
        log_stage(logger, "auth", "principal_missing", request_id=_request_id(request),
                  path=str(request.url.path))
        raise raise_http_error(401, ErrorCode.policy_denied, "Authentication required", _request_id(request))
    return claims


# ---- Request bodies ---------------------------------------------------------
# Values are left untyped: the request builder owns field validation so every
# rule reports through the same error kind.

class _LooseBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    def caller_fields(self) -> Dict[str, Any]:
        return self.model_dump()


class AnalyzeIn(_LooseBody):
    artifact: Any = None


class CycleFindIn(_LooseBody):
    node_b: Any = None
    apply_settlement: Any = None
    options: Any = None


class PaymentIn(_LooseBody):
    node_b: Any = None
    amount: Any = None


# ---- Application & router --------------------------------------------------
app = FastAPI(title="Matrix Gateway", version="0.1.0")
router = APIRouter(prefix="/v1")

setup_service(app, "gateway", cors_origins=settings.cors_origins)
attach_standard_error_handlers(app, service="gateway")


def _respond(request: Request, outcome: ProxyOutcome) -> Dict[str, Any]:
    rid = _request_id(request)
    err = outcome.error
    if err is not None:
        details: Dict[str, Any] = {"stage": err.stage, **err.details}
        if outcome.request is not None:
            details["request"] = outcome.request
        raise raise_http_error(err.http_status, err.kind, err.message, rid, details=details)
    return {
        "ok": True,
        "request_id": rid,
        "operation": outcome.operation.value,
        "request": outcome.request,
        "result": outcome.result,
    }


@router.post("/analyze")
async def analyze(
    request: Request,
    body: Optional[AnalyzeIn] = None,
    principal: Dict[str, str] = Depends(get_principal),
    service: MatrixService = Depends(get_service),
):
    fields = body.caller_fields() if body is not None else {}
    return _respond(request, await service.run(OperationKind.analyze, fields, principal))


@router.post("/cycle/find")
async def cycle_find(
    request: Request,
    body: CycleFindIn,
    principal: Dict[str, str] = Depends(get_principal),
    service: MatrixService = Depends(get_service),
):
    return _respond(request, await service.run(OperationKind.cycle_find, body.caller_fields(), principal))


@router.post("/payment")
async def payment(
    request: Request,
    body: PaymentIn,
    principal: Dict[str, str] = Depends(get_principal),
    service: MatrixService = Depends(get_service),
):
    return _respond(request, await service.run(OperationKind.payment, body.caller_fields(), principal))


@router.get("/artifacts/latest")
async def latest_artifact(
    request: Request,
    artifact: Optional[str] = Query(default=None),
    principal: Dict[str, str] = Depends(get_principal),
    service: MatrixService = Depends(get_service),
):
    try:
        resolved = await service.preview(artifact, principal)
    except ValidationFailed as exc:
        raise raise_http_error(
            400, ErrorCode.validation_failed, str(exc), _request_id(request),
            details={"stage": "resolve", "field": exc.field},
        )
    return {"ok": True, "request_id": _request_id(request), **resolved}


app.include_router(router)


async def _ready() -> dict:
    reachable = await get_service().backend.ping()
    return {"ready": reachable, "backend": "ok" if reachable else "unreachable"}


attach_health_routes(
    app,
    checks={
        "liveness": lambda: True,
        "readiness": _ready,
    },
)


@app.on_event("shutdown")
async def _close_http_client() -> None:
    await aclose_http_client()
