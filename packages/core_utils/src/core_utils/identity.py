from __future__ import annotations
from typing import Any, Dict, Mapping, Optional
from core_config.constants import IDENTITY_CLAIM_PRIORITY, UNKNOWN_IDENTITY
from core_http.headers import extract_identity_headers

Claims = Mapping[str, Any]

def claims_from_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Identity claims forwarded by the ingress as ``X-User-*`` headers."""
    return extract_identity_headers(headers)

def local_part(value: str) -> str:
    """Substring before the first ``@``; the value itself when there is none."""
    head, sep, _ = value.partition("@")
    return head if sep else value

def resolve_principal_name(claims: Optional[Claims]) -> str:
    """First non-blank claim in priority order, or ``"unknown"``."""
    for key in IDENTITY_CLAIM_PRIORITY:
        v = (claims or {}).get(key)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return UNKNOWN_IDENTITY

def resolve_node_identity(claims: Optional[Claims]) -> str:
    """
    Derive the caller's node identity from the authenticated principal.

    No character-class check happens here; the request builder validates
    the result like any other node identifier.
    """
    return local_part(resolve_principal_name(claims))

__all__ = ["claims_from_headers", "local_part", "resolve_principal_name", "resolve_node_identity"]
