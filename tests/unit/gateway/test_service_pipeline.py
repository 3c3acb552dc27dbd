import json

import httpx
import pytest

from core_logging.error_codes import ErrorCode

LISTING = ["m-20250101-010101.b64", "m-20250102-020202.b64", "m-latest.b64"]


def _audit_events(out: str):
    events = []
    for line in out.splitlines():
        try:
            rec = json.loads(line)
        except json.JSONDecodeError:
            continue
        if rec.get("stage") == "audit":
            events.append(rec["event"])
    return events


@pytest.mark.asyncio
async def test_payment_success(service, backend, principal, capsys):
    backend.json("GET", "/artifacts", LISTING)
    backend.json("POST", "/payment", {"status": "ok", "written_blob": "m-20250301-000000.b64"})

    outcome = await service.run("payment", {"node_b": "matrices-2", "amount": 10}, principal)

    assert outcome.ok and outcome.http_status == 200
    assert outcome.request == {
        "container": "matrices",
        "blob_name": "m-20250102-020202.b64",
        "node_a": "alice",
        "out_base": "m.b64",
    }
    assert outcome.result == {"status": "ok", "written_blob": "m-20250301-000000.b64", "ok": True}
    (sent,) = backend.domain_calls()
    assert backend.body(sent) == {
        "container": "matrices",
        "blob_name": "m-20250102-020202.b64",
        "node_a": "alice",
        "node_b": "matrices-2",
        "amount": 10,
        "out_base": "m.b64",
    }
    assert _audit_events(capsys.readouterr().out) == ["payment_attempt", "payment_succeeded"]


@pytest.mark.asyncio
async def test_validation_failure_never_reaches_backend(service, backend, principal, capsys):
    outcome = await service.run("payment", {"node_b": "matrices-2", "amount": 10.5}, principal)
    assert outcome.error.kind is ErrorCode.validation_failed
    assert outcome.http_status == 400
    assert outcome.request is None
    assert backend.calls == []
    assert _audit_events(capsys.readouterr().out) == ["payment_failed"]


@pytest.mark.asyncio
async def test_cycle_not_found(service, backend, principal):
    backend.json("GET", "/artifacts", LISTING)
    backend.json("POST", "/cycle/find", {"found": False})
    outcome = await service.run("cycle_find", {"node_b": "bob"}, principal)
    assert outcome.ok
    assert outcome.result == {"found": False}


@pytest.mark.asyncio
async def test_unexpected_key_is_contract_violation(service, backend, principal):
    backend.json("GET", "/artifacts", LISTING)
    backend.json("POST", "/cycle/find", {"found": True, "unexpected": 1})
    outcome = await service.run("cycle_find", {"node_b": "bob"}, principal)
    assert outcome.error.kind is ErrorCode.contract_violation
    assert outcome.error.stage == "validate"
    assert outcome.http_status == 502
    assert outcome.request["blob_name"] == "m-20250102-020202.b64"


@pytest.mark.asyncio
async def test_405_then_success_via_alternate_verb(service, backend, principal):
    backend.json("GET", "/artifacts", LISTING)
    backend.on("POST", "/analyze", httpx.Response(405))
    backend.json("GET", "/analyze", {"status": "ok", "nodes": ["a", "b"]})
    outcome = await service.run("analyze", {}, principal)
    assert outcome.ok
    assert outcome.result == {"status": "ok", "nodes": ["a", "b"]}
    assert [r.method for r in backend.domain_calls()] == ["POST", "GET"]


@pytest.mark.asyncio
async def test_double_405_is_rejection(service, backend, principal):
    backend.json("GET", "/artifacts", LISTING)
    backend.on("POST", "/payment", httpx.Response(405))
    backend.on("GET", "/payment", httpx.Response(405))
    outcome = await service.run("payment", {"node_b": "bob", "amount": 1}, principal)
    assert outcome.error.kind is ErrorCode.backend_rejected
    assert outcome.error.details["backend_status"] == 405
    assert len(backend.domain_calls()) == 2


@pytest.mark.asyncio
async def test_listing_outage_still_sends_with_fallback(service, backend, principal):
    backend.on("GET", "/artifacts", httpx.ConnectError("refused"))
    backend.json("POST", "/payment", {"status": "ok"})
    outcome = await service.run("payment", {"node_b": "bob", "amount": 1}, principal)
    assert outcome.ok
    assert outcome.request["blob_name"] == "initial-matrix.b64"


@pytest.mark.asyncio
async def test_backend_unreachable(service, backend, principal, capsys):
    backend.json("GET", "/artifacts", LISTING)
    backend.on("POST", "/cycle/find", httpx.ConnectError("refused"))
    outcome = await service.run("cycle_find", {"node_b": "bob"}, principal)
    assert outcome.error.kind is ErrorCode.backend_unreachable
    assert outcome.error.stage == "send"
    assert outcome.http_status == 502
    assert _audit_events(capsys.readouterr().out) == ["cycle_find_attempt", "cycle_find_failed"]


@pytest.mark.asyncio
async def test_analyze_is_not_audited(service, backend, principal, capsys):
    backend.json("GET", "/artifacts", LISTING)
    backend.json("POST", "/analyze", {"status": "ok"})
    outcome = await service.run("analyze", None, principal)
    assert outcome.ok
    assert _audit_events(capsys.readouterr().out) == []


@pytest.mark.asyncio
async def test_preview(service, backend, principal):
    backend.json("GET", "/artifacts", LISTING)
    assert await service.preview(None, principal) == {
        "container": "matrices",
        "blob_name": "m-20250102-020202.b64",
        "out_base": "m.b64",
        "node_a": "alice",
    }
    assert (await service.preview("m-20240101-000000.b64", principal))["out_base"] == "m.b64"


@pytest.mark.asyncio
async def test_declined_payment_passes_backend_note_through(service, backend, principal):
    backend.json("GET", "/artifacts", LISTING)
    backend.json("POST", "/payment", {"status": "error", "note": "insufficient balance"})
    outcome = await service.run("payment", {"node_b": "bob", "amount": 5}, principal)
    assert outcome.ok and outcome.http_status == 200
    assert outcome.result == {"status": "error", "note": "insufficient balance", "ok": False}


@pytest.mark.asyncio
async def test_analyze_reply_without_status(service, backend, principal):
    backend.json("GET", "/artifacts", LISTING)
    backend.json("POST", "/analyze", {"blob_name": "m-20250102-020202.b64", "nodes": [], "edges": []})
    outcome = await service.run("analyze", {}, principal)
    assert outcome.ok
    assert outcome.result["status"] == "unknown"
    assert outcome.result["edges"] == []
