"""
Canonical HTTP header names used by the gateway.
"""
from typing import Dict, Final, Mapping

# --- Correlation -------------------------------------------------------------
X_REQUEST_ID: Final[str]            = "X-Request-Id"

# --- Identity claims forwarded by the authenticating ingress -----------------
X_USER_UPN: Final[str]              = "X-User-Upn"
X_USER_PREFERRED_USERNAME: Final[str] = "X-User-Preferred-Username"
X_USER_EMAIL: Final[str]            = "X-User-Email"
X_USER_NAME: Final[str]             = "X-User-Name"

# Header → claim name, in claim-priority order.
IDENTITY_CLAIM_HEADERS: Final[Dict[str, str]] = {
    X_USER_UPN: "upn",
    X_USER_PREFERRED_USERNAME: "preferred_username",
    X_USER_EMAIL: "email",
    X_USER_NAME: "name",
}

def extract_identity_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """
    Case-insensitive selection of identity headers, keyed by claim name.
    Strips whitespace and drops empty values.
    """
    src = {str(k).lower(): v for k, v in headers.items()}
    out: Dict[str, str] = {}
    for name, claim in IDENTITY_CLAIM_HEADERS.items():
        v = src.get(name.lower())
        if isinstance(v, str) and v.strip():
            out[claim] = v.strip()
    return out

__all__ = [
    "X_REQUEST_ID",
    "X_USER_UPN",
    "X_USER_PREFERRED_USERNAME",
    "X_USER_EMAIL",
    "X_USER_NAME",
    "IDENTITY_CLAIM_HEADERS",
    "extract_identity_headers",
]
