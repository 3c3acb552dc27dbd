"""
Request pipeline: assemble → send → validate, with every failure translated
into exactly one caller-facing error kind.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from core_config import Settings, get_settings
from core_logging import get_logger, record_error
from core_logging.error_codes import ErrorCode
from core_metrics import counter as metric_counter, histogram_ms as metric_histogram_ms
from core_models import OperationKind
from core_storage.artifact_names import strip_timestamps
from core_validator import ContractViolation, validate_response

from .builder import AuthoritativeRequestBuilder
from .errors import BackendStatusError, ErrorTranslator, UserFacingError, ValidationFailed
from .http import BackendGateway
from .logging_helpers import audit, stage as log_stage
from .operations import operation_for

logger = get_logger("gateway")

# Operations that change backend state get an audit trail.
_AUDITED = frozenset({OperationKind.cycle_find, OperationKind.payment})

_BACKEND_KINDS = frozenset({
    ErrorCode.backend_unreachable,
    ErrorCode.backend_rejected,
    ErrorCode.backend_faulted,
    ErrorCode.contract_violation,
})


@dataclass(frozen=True)
class ProxyOutcome:
    operation: OperationKind
    request: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[UserFacingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def http_status(self) -> int:
        return 200 if self.error is None else self.error.http_status


def _result_body(result) -> Dict[str, Any]:
    return result.model_dump(mode="json", exclude={"kind"}, exclude_none=True)


class MatrixService:
    """One instance per process; safe for concurrent requests."""

    def __init__(self, settings: Optional[Settings] = None, *, backend: Optional[BackendGateway] = None):
        self.settings = settings or get_settings()
        self.backend = backend or BackendGateway(self.settings)
        self.builder = AuthoritativeRequestBuilder(self.settings, self.backend.list_artifacts)
        self.translator = ErrorTranslator(
            max_chars=self.settings.error_detail_max_chars,
            timeout_ms=self.settings.backend_timeout_ms,
        )

    def _fail(self, kind: OperationKind, stage: str, failure: BaseException,
              request: Optional[Dict[str, Any]]) -> ProxyOutcome:
        err = self.translator.translate(stage, failure)
        metric_counter("gateway_outcome_total", 1, operation=kind.value, kind=err.kind.value)
        if err.kind in _BACKEND_KINDS:
            record_error(
                err.kind.value, where=f"gateway.{stage}", message=err.message, logger=logger,
                operation=kind.value, status_code=err.http_status,
            )
        else:
            log_stage(stage, "request_invalid", operation=kind.value,
                      field=err.details.get("field"), message=err.message)
        if kind in _AUDITED:
            audit(f"{kind.value}_failed", operation=kind.value, error_code=err.kind.value,
                  failed_stage=stage, request=request, message=err.message)
        return ProxyOutcome(operation=kind, request=request, error=err)

    async def run(self, kind: OperationKind | str, fields: Optional[Mapping[str, Any]],
                  principal: Optional[Mapping[str, Any]]) -> ProxyOutcome:
        kind = OperationKind(kind)
        t0 = time.perf_counter()

        try:
            domain_request = await self.builder.assemble(kind, fields, principal)
        except ValidationFailed as exc:
            return self._fail(kind, "assemble", exc, None)
        request = domain_request.authoritative()
        if kind in _AUDITED:
            audit(f"{kind.value}_attempt", operation=kind.value, request=request,
                  node_b=getattr(domain_request, "node_b", None),
                  amount=getattr(domain_request, "amount", None))

        op = operation_for(kind, self.settings)
        try:
            reply = await self.backend.send(op, domain_request.payload())
        except (BackendStatusError, ContractViolation, httpx.RequestError) as exc:
            return self._fail(kind, "send", exc, request)

        try:
            result = validate_response(kind, reply.data)
        except ContractViolation as exc:
            return self._fail(kind, "validate", exc, request)

        body = _result_body(result)
        metric_counter("gateway_outcome_total", 1, operation=kind.value, kind="success")
        metric_histogram_ms("gateway_operation_ms", (time.perf_counter() - t0) * 1000.0, operation=kind.value)
        log_stage("respond", "operation_succeeded", operation=kind.value,
                  artifact=request.get("blob_name"), method=reply.method, fell_back=reply.fell_back)
        if kind in _AUDITED:
            audit(f"{kind.value}_succeeded", operation=kind.value, request=request,
                  written_blob=body.get("written_blob"), found=body.get("found"))
        return ProxyOutcome(operation=kind, request=request, result=body)

    async def preview(self, pin: Any, principal: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Authoritative fields a submission would use right now (form pre-fill)."""
        container = self.settings.matrix_container
        artifact = await self.builder.resolve_artifact(container, self.builder.validate_pin(pin))
        return {
            "container": container,
            "blob_name": artifact,
            "out_base": strip_timestamps(artifact),
            "node_a": self.builder.acting_node(principal),
        }


__all__ = ["MatrixService", "ProxyOutcome"]
