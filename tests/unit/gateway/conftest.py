# tests/unit/gateway/conftest.py
"""
Gateway unit-test harness.

Responsibilities
────────────────
• Build settings that point at a fake backend host and ignore any local
  ``.env`` file.
• Fake the backend with ``httpx.MockTransport``: each test registers answers
  per ``(method, path)`` and reads back the recorded calls.
• Wire a ``MatrixService`` onto that transport for pipeline and route tests.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

from core_config import Settings
from core_utils import jsonx

from gateway.http import BackendGateway
from gateway.service import MatrixService

BACKEND_URL = "http://backend.test"

Answer = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """Scripted backend; unscripted routes answer 404."""

    def __init__(self) -> None:
        self._answers: Dict[Tuple[str, str], deque] = defaultdict(deque)
        self._sticky: Dict[Tuple[str, str], Answer] = {}
        self.calls: List[httpx.Request] = []

    def on(self, method: str, path: str, *answers: Answer, sticky: bool = False) -> "FakeBackend":
        key = (method.upper(), path)
        if sticky:
            self._sticky[key] = answers[0]
        else:
            self._answers[key].extend(answers)
        return self

    def json(self, method: str, path: str, body: Any, status: int = 200, **kw: Any) -> "FakeBackend":
        return self.on(method, path, httpx.Response(status, json=body), **kw)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, request.url.path)
        queue = self._answers.get(key)
        answer = queue.popleft() if queue else self._sticky.get(key)
        if answer is None:
            return httpx.Response(404, json={"detail": "not found"})
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(request)
        return answer

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def routes(self) -> List[Tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.calls]

    def domain_calls(self) -> List[httpx.Request]:
        return [r for r in self.calls if r.url.path != "/artifacts"]

    @staticmethod
    def body(request: httpx.Request) -> Dict[str, Any]:
        return jsonx.loads(request.content) if request.content else {}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        MATRIX_API_BASE_URL=BACKEND_URL,
        MATRIX_CONTAINER="matrices",
        BACKEND_TIMEOUT_MS=2000,
        ERROR_DETAIL_MAX_CHARS=1000,
        AUTH_DISABLED=False,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def gateway(settings: Settings, backend: FakeBackend) -> BackendGateway:
    return BackendGateway(settings, client=backend.client())


@pytest.fixture
def service(settings: Settings, gateway: BackendGateway) -> MatrixService:
    return MatrixService(settings, backend=gateway)


@pytest.fixture
def principal() -> Dict[str, str]:
    return {"upn": "alice@example.com"}
