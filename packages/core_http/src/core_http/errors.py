from __future__ import annotations
from typing import Any
from fastapi import FastAPI, Request
from fastapi import HTTPException as FastAPIHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from core_logging import get_logger, log_stage, current_request_id, record_error
from core_logging.error_codes import ErrorCode
from core_utils.ids import compute_request_id, generate_request_id
from core_utils import jsonx

def error_envelope(
    code: ErrorCode | str,
    message: str,
    request_id: str,
    *,
    details: object | None = None,
) -> dict[str, Any]:
    """The canonical error body: ``{"error": {...}, "request_id": ...}``."""
    payload: dict[str, Any] = {
        "error": {
            "code": code.value if isinstance(code, ErrorCode) else str(code),
            "message": message,
            "request_id": request_id,
        },
        "request_id": request_id,
    }
    if details is not None:
        payload["error"]["details"] = jsonx.sanitize(details)
    return payload

def raise_http_error(
    status_code: int,
    code: ErrorCode,
    message: str,
    request_id: str,
    *,
    details: object | None = None,
) -> FastAPIHTTPException:
    """
    Construct a FastAPI HTTPException with the canonical error envelope.
    attach_standard_error_handlers() will pass this JSON through unchanged.
    """
    return FastAPIHTTPException(
        status_code=status_code,
        detail=error_envelope(code, message, request_id, details=details),
    )

async def _request_id_for(request: Request) -> str:
    rid = getattr(request.state, "request_id", None) or current_request_id()
    if rid:
        return rid
    try:
        body = await request.body()
    except (RuntimeError, ValueError, TypeError):
        body = b""
    try:
        return compute_request_id(str(request.url.path), request.url.query, body)
    except (TypeError, ValueError):
        return generate_request_id()

def attach_standard_error_handlers(app: FastAPI, *, service: str) -> None:
    """
    Uniform error shaping:
      - 422: request body / parameter validation
      - Starlette HTTP errors (envelope passthrough)
      - 500: Catch-all with {code, message, details, request_id}
    """
    logger = get_logger(service)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        req_id = await _request_id_for(request)
        errors = jsonx.sanitize(exc.errors())
        log_stage(logger, "validation", "request_validation_failed",
                  request_id=req_id, errors=errors, path=str(request.url.path), method=request.method)
        return JSONResponse(
            status_code=422,
            content=error_envelope(
                ErrorCode.validation_failed, "Request validation failed", req_id,
                details={"errors": errors},
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        req_id = await _request_id_for(request)
        record_error(
            ErrorCode.internal.value, where="request", message=str(exc), logger=logger,
            request_id=req_id, error_type=exc.__class__.__name__,
        )
        return JSONResponse(
            status_code=500,
            content=error_envelope(
                ErrorCode.internal, "Unexpected error", req_id,
                details={"type": exc.__class__.__name__},
            ),
        )
