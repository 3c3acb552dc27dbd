import httpx
import pytest

from core_logging import bind_request_id
from core_models import OperationKind
from core_validator import ContractViolation

from gateway.errors import BackendStatusError
from gateway.http import BackendGateway, to_query_params
from gateway.operations import operation_for

_PAYLOAD = {"container": "matrices", "blob_name": "m-20250101-010101.b64"}


@pytest.mark.asyncio
async def test_primary_call_uses_configured_verb(gateway, backend, settings):
    backend.json("POST", "/analyze", {"status": "ok"})
    reply = await gateway.send(operation_for("analyze", settings), _PAYLOAD)
    assert reply.data == {"status": "ok"}
    assert reply.method == "POST" and reply.fell_back is False
    assert backend.routes() == [("POST", "/analyze")]
    assert backend.body(backend.calls[0]) == _PAYLOAD


@pytest.mark.asyncio
async def test_405_triggers_exactly_one_fallback(gateway, backend, settings):
    backend.on("POST", "/analyze", httpx.Response(405))
    backend.json("GET", "/analyze", {"status": "ok"})
    reply = await gateway.send(operation_for(OperationKind.analyze, settings), _PAYLOAD)
    assert reply.fell_back is True and reply.method == "GET"
    assert backend.routes() == [("POST", "/analyze"), ("GET", "/analyze")]
    params = dict(backend.calls[1].url.params)
    assert params == {"container": "matrices", "blob_name": "m-20250101-010101.b64"}


@pytest.mark.asyncio
async def test_second_405_surfaces(gateway, backend, settings):
    backend.on("POST", "/payment", httpx.Response(405, text="POST not allowed"))
    backend.on("GET", "/payment", httpx.Response(405, text="GET not allowed"))
    with pytest.raises(BackendStatusError) as ei:
        await gateway.send(operation_for("payment", settings), {"amount": 10})
    assert ei.value.status_code == 405
    assert ei.value.method == "GET"
    assert len(backend.calls) == 2


@pytest.mark.asyncio
async def test_get_fallback_moves_query_into_body(settings, backend):
    s = settings.model_copy(update={"backend_cycle_find_method": "GET"})
    gw = BackendGateway(s, client=backend.client())
    backend.on("GET", "/cycle/find", httpx.Response(405))
    backend.json("POST", "/cycle/find", {"found": False})
    reply = await gw.send(operation_for("cycle_find", s), {"node_b": "b", "apply_settlement": True})
    assert reply.method == "POST"
    assert backend.body(backend.calls[1]) == {"node_b": "b", "apply_settlement": True}
    assert backend.calls[0].url.params["apply_settlement"] == "true"


@pytest.mark.asyncio
async def test_server_error_is_not_retried(gateway, backend, settings):
    backend.on("POST", "/payment", httpx.Response(500, text="boom"))
    with pytest.raises(BackendStatusError) as ei:
        await gateway.send(operation_for("payment", settings), {"amount": 10})
    assert ei.value.status_code == 500 and ei.value.body == "boom"
    assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_timeout_propagates_without_retry(gateway, backend, settings):
    backend.on("POST", "/cycle/find", httpx.ReadTimeout("timed out"))
    with pytest.raises(httpx.TimeoutException):
        await gateway.send(operation_for("cycle_find", settings), {"node_b": "b"})
    assert len(backend.calls) == 1


@pytest.mark.asyncio
async def test_empty_body_is_none_and_bad_json_is_contract_violation(gateway, backend, settings):
    backend.on("POST", "/analyze", httpx.Response(200, content=b""))
    reply = await gateway.send(operation_for("analyze", settings), _PAYLOAD)
    assert reply.data is None

    backend.on("POST", "/analyze", httpx.Response(200, content=b"<html>ok</html>"))
    with pytest.raises(ContractViolation):
        await gateway.send(operation_for("analyze", settings), _PAYLOAD)


@pytest.mark.asyncio
async def test_request_id_is_forwarded(gateway, backend, settings):
    bind_request_id("rid-forward-1")
    try:
        backend.json("POST", "/analyze", {"status": "ok"})
        await gateway.send(operation_for("analyze", settings), _PAYLOAD)
    finally:
        bind_request_id(None)
    assert backend.calls[0].headers["x-request-id"] == "rid-forward-1"


@pytest.mark.asyncio
async def test_list_artifacts_shapes(gateway, backend):
    backend.json("GET", "/artifacts", {"blobs": ["a.b64", {"name": "b.b64"}]})
    assert await gateway.list_artifacts("matrices") == ["a.b64", "b.b64"]
    assert backend.calls[0].url.params["container"] == "matrices"

    backend.on("GET", "/artifacts", httpx.Response(404))
    assert await gateway.list_artifacts("matrices") == []

    backend.on("GET", "/artifacts", httpx.Response(200, content=b"not json"))
    assert await gateway.list_artifacts("matrices") == []

    backend.on("GET", "/artifacts", httpx.Response(503))
    with pytest.raises(BackendStatusError):
        await gateway.list_artifacts("matrices")


@pytest.mark.asyncio
async def test_ping(gateway, backend):
    backend.json("GET", "/artifacts", [])
    assert await gateway.ping() is True
    backend.on("GET", "/artifacts", httpx.ConnectError("refused"))
    assert await gateway.ping() is False
    backend.on("GET", "/artifacts", httpx.Response(502))
    assert await gateway.ping() is False


def test_to_query_params():
    out = to_query_params({"a": 1, "b": False, "c": None, "d": {"k": [1]}, "e": "x"})
    assert out == {"a": "1", "b": "false", "d": '{"k":[1]}', "e": "x"}
