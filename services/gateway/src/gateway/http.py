from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from core_config import Settings, get_settings
from core_config.constants import timeout_seconds
from core_http.client import get_http_client, send_request
from core_metrics import counter as metric_counter
from core_storage.artifact_index import parse_listing
from core_utils import jsonx
from core_validator import ContractViolation

from .errors import BackendStatusError
from .logging_helpers import stage as log_stage
from .operations import Operation


@dataclass(frozen=True)
class BackendReply:
    status_code: int
    data: Any
    method: str
    fell_back: bool = False


def to_query_params(payload: Dict[str, Any]) -> Dict[str, str]:
    """Flatten a JSON body into query parameters; structures are JSON-encoded."""
    params: Dict[str, str] = {}
    for k, v in payload.items():
        if v is None:
            continue
        if isinstance(v, bool):
            params[k] = "true" if v else "false"
        elif isinstance(v, (str, int, float)):
            params[k] = str(v)
        else:
            params[k] = jsonx.dumps(v)
    return params


class BackendGateway:
    """
    Transport to the backend service.

    Each operation is sent once with its configured verb.  A 405 answer gets
    exactly one retry with the alternate verb (POST ↔ GET, the payload moving
    between JSON body and query string); nothing else is retried.  Every
    attempt is bounded by the configured timeout.
    """

    def __init__(self, settings: Optional[Settings] = None, *, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client(
            timeout_ms=self.settings.backend_timeout_ms, settings=self.settings
        )

    def _url(self, path: str) -> str:
        return f"{self.settings.matrix_api_base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _attempt(self, method: str, path: str, payload: Dict[str, Any], *, operation: str) -> httpx.Response:
        if method == "GET":
            kwargs: Dict[str, Any] = {"params": to_query_params(payload)}
        else:
            kwargs = {"json": payload}
        resp = await send_request(
            self.client, method, self._url(path),
            timeout_s=timeout_seconds(self.settings.backend_timeout_ms),
            **kwargs,
        )
        metric_counter("gateway_backend_calls_total", 1,
                       operation=operation, method=method, code=str(resp.status_code))
        return resp

    async def send(self, op: Operation, payload: Dict[str, Any]) -> BackendReply:
        method = op.method
        resp = await self._attempt(method, op.path, payload, operation=op.kind.value)
        fell_back = False
        if resp.status_code == 405:
            log_stage("send", "verb_fallback", operation=op.kind.value,
                      from_method=method, to_method=op.alternate_method, path=op.path)
            metric_counter("gateway_verb_fallback_total", 1, operation=op.kind.value)
            method, fell_back = op.alternate_method, True
            resp = await self._attempt(method, op.path, payload, operation=op.kind.value)

        if not 200 <= resp.status_code < 300:
            log_stage("send", "backend_status", operation=op.kind.value, method=method,
                      path=op.path, status_code=resp.status_code, fell_back=fell_back)
            raise BackendStatusError(resp.status_code, resp.text, method=method, path=op.path)

        if not resp.content.strip():
            data: Any = None
        else:
            try:
                data = jsonx.loads(resp.content)
            except ValueError as exc:
                raise ContractViolation(op.kind, ["<root>: response body is not valid JSON"]) from exc
        return BackendReply(status_code=resp.status_code, data=data, method=method, fell_back=fell_back)

    async def list_artifacts(self, container: str) -> List[str]:
        """Names currently in *container*; a 404 means the container is empty."""
        path = self.settings.backend_listing_path
        resp = await self._attempt("GET", path, {"container": container}, operation="listing")
        if resp.status_code == 404:
            return []
        if not 200 <= resp.status_code < 300:
            raise BackendStatusError(resp.status_code, resp.text, method="GET", path=path)
        try:
            data = jsonx.loads(resp.content) if resp.content.strip() else None
        except ValueError:
            log_stage("resolve", "listing_body_unparseable", container=container, size=len(resp.content))
            return []
        return parse_listing(data)

    async def ping(self) -> bool:
        """Readiness probe: the listing endpoint answers below 500."""
        try:
            resp = await self._attempt(
                "GET", self.settings.backend_listing_path,
                {"container": self.settings.matrix_container}, operation="ping",
            )
        except httpx.RequestError:
            return False
        return resp.status_code < 500


__all__ = ["BackendGateway", "BackendReply", "to_query_params"]
