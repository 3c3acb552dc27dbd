from core_utils.identity import (
    claims_from_headers,
    local_part,
    resolve_node_identity,
    resolve_principal_name,
)


def test_upn_local_part():
    assert resolve_node_identity({"upn": "alice@example.com"}) == "alice"


def test_no_claims_is_unknown():
    assert resolve_node_identity({}) == "unknown"
    assert resolve_node_identity(None) == "unknown"


def test_claim_priority_and_blanks():
    claims = {"upn": "  ", "preferred_username": "", "email": "bob@corp.example", "name": "Robert"}
    assert resolve_principal_name(claims) == "bob@corp.example"
    assert resolve_node_identity(claims) == "bob"
    assert resolve_node_identity({"name": "carol", "email": "dave@x.y"}) == "dave"


def test_local_part_splits_on_first_at():
    assert local_part("a@b@c") == "a"
    assert local_part("plain") == "plain"
    assert local_part("@domain") == ""


def test_claims_from_headers_case_insensitive():
    headers = {"x-user-upn": " alice@example.com ", "X-USER-EMAIL": "", "X-User-Name": "Alice"}
    assert claims_from_headers(headers) == {"upn": "alice@example.com", "name": "Alice"}
