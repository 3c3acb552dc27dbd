from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from core_config.constants import ERROR_DETAIL_MAX_CHARS, TRUNCATION_MARKER
from core_logging.error_codes import ErrorCode
from core_utils import jsonx
from core_validator import ContractViolation


class ValidationFailed(Exception):
    """A caller-supplied (or caller-derived) field is unusable; never sent to the backend."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class BackendStatusError(Exception):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str, *, method: str, path: str):
        self.status_code = int(status_code)
        self.body = body or ""
        self.method = method
        self.path = path
        super().__init__(f"{method} {path} -> HTTP {self.status_code}")


@dataclass(frozen=True)
class UserFacingError:
    kind: ErrorCode
    message: str
    http_status: int
    stage: str
    details: Dict[str, Any] = field(default_factory=dict)


# Gateway response status per error kind.
HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.validation_failed: 400,
    ErrorCode.backend_unreachable: 502,
    ErrorCode.backend_rejected: 422,
    ErrorCode.backend_faulted: 502,
    ErrorCode.contract_violation: 502,
}


def truncate(text: str, limit: int = ERROR_DETAIL_MAX_CHARS) -> str:
    text = text or ""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def backend_detail(body: str) -> str:
    """Prefer a JSON ``detail`` / ``message`` / ``error`` field; fall back to raw text."""
    raw = (body or "").strip()
    if raw[:1] == "{":
        try:
            data = jsonx.loads(raw)
        except ValueError:
            data = None
        if isinstance(data, dict):
            for key in ("detail", "message", "error"):
                v = data.get(key)
                if isinstance(v, str) and v.strip():
                    return v.strip()
                if v not in (None, "", [], {}):
                    return jsonx.dumps(v)
    return raw


class ErrorTranslator:
    """Map a failure raised at any pipeline stage onto one caller-facing error."""

    def __init__(self, *, max_chars: int = ERROR_DETAIL_MAX_CHARS, timeout_ms: Optional[int] = None):
        self.max_chars = max_chars
        self.timeout_ms = timeout_ms

    def _error(self, kind: ErrorCode, message: str, stage: str, *,
               http_status: Optional[int] = None, **details: Any) -> UserFacingError:
        return UserFacingError(
            kind=kind,
            message=truncate(message, self.max_chars),
            http_status=http_status or HTTP_STATUS[kind],
            stage=stage,
            details={k: v for k, v in details.items() if v is not None},
        )

    def translate(self, stage: str, failure: BaseException) -> UserFacingError:
        if isinstance(failure, ValidationFailed):
            return self._error(ErrorCode.validation_failed, str(failure), stage, field=failure.field)

        if isinstance(failure, ContractViolation):
            return self._error(
                ErrorCode.contract_violation,
                f"Backend response did not match the {failure.kind.value} contract: " + "; ".join(failure.errors),
                stage,
                errors=[truncate(e, 200) for e in failure.errors[:10]],
            )

        if isinstance(failure, httpx.TimeoutException):
            budget = f" within {self.timeout_ms} ms" if self.timeout_ms else ""
            return self._error(
                ErrorCode.backend_unreachable, f"Backend did not answer{budget}", stage,
                http_status=504, reason="timeout",
            )

        if isinstance(failure, httpx.RequestError):
            return self._error(
                ErrorCode.backend_unreachable,
                f"Backend unreachable: {failure.__class__.__name__}", stage,
                reason="transport",
            )

        if isinstance(failure, BackendStatusError):
            detail = backend_detail(failure.body)
            if 400 <= failure.status_code < 500:
                kind, lead = ErrorCode.backend_rejected, "Backend rejected the request"
            else:
                kind, lead = ErrorCode.backend_faulted, "Backend failed"
            message = f"{lead} (HTTP {failure.status_code})" + (f": {detail}" if detail else "")
            return self._error(kind, message, stage, backend_status=failure.status_code)

        raise TypeError(f"no translation for {failure.__class__.__name__}") from failure


__all__ = [
    "ValidationFailed",
    "BackendStatusError",
    "UserFacingError",
    "ErrorTranslator",
    "HTTP_STATUS",
    "truncate",
    "backend_detail",
]
