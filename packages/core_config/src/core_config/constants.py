import os
import re


# ── Artifact naming ──────────────────────────────────────────────────────
# Artifacts are timestamp-versioned snapshot files: <base>[-YYYYMMDD-HHMMSS]…<ext>
ARTIFACT_EXTENSION = os.getenv("ARTIFACT_EXTENSION", ".b64")
ARTIFACT_ALIAS_MARKER = os.getenv("ARTIFACT_ALIAS_MARKER", "-latest")
FALLBACK_ARTIFACT = os.getenv("FALLBACK_ARTIFACT", "initial-matrix.b64")
DEFAULT_BASE_NAME = os.getenv("DEFAULT_BASE_NAME", "initial-matrix.b64")
DEFAULT_CONTAINER = os.getenv("MATRIX_CONTAINER", "matrices")

# Timestamp token: 8 date digits, a dash, 6 time digits (UTC wall clock).
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
COMPACT_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
TIMESTAMP_TOKEN_RE = r"\d{8}-\d{6}"

# Keys a listing object may wrap its name array under, in lookup order.
LISTING_WRAPPER_KEYS: tuple[str, ...] = ("blobs", "artifacts", "names")

# ── Caller-supplied field rules ─────────────────────────────────────────
NODE_ID_MAX_LEN = 64
NODE_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{1,%d}$" % NODE_ID_MAX_LEN)
ARTIFACT_PIN_RE = re.compile(r"^[A-Za-z0-9._\-]{1,255}$")
AMOUNT_MAX_INTEGER_DIGITS = 12

# Identity claims in priority order; the first non-blank one names the caller.
IDENTITY_CLAIM_PRIORITY: tuple[str, ...] = ("upn", "preferred_username", "email", "name")
UNKNOWN_IDENTITY = "unknown"

# Keys that only the gateway may set; callers sending them are ignored.
AUTHORITATIVE_FIELDS: frozenset[str] = frozenset(
    {"container", "blob_name", "blob", "out_base", "node_a"}
)

# ── Backend contract ─────────────────────────────────────────────────────
BACKEND_TIMEOUT_MS = int(os.getenv("BACKEND_TIMEOUT_MS", "30000"))
BACKEND_CONNECT_TIMEOUT_MS = int(os.getenv("BACKEND_CONNECT_TIMEOUT_MS", "5000"))

# Backend error bodies are cut to this many characters before reaching callers.
ERROR_DETAIL_MAX_CHARS = int(os.getenv("ERROR_DETAIL_MAX_CHARS", "1000"))
TRUNCATION_MARKER = "...(truncated)"

# ── Process ──────────────────────────────────────────────────────────────
GATEWAY_PORT = int(os.getenv("GATEWAY_PORT", "8080"))


def timeout_seconds(timeout_ms: int | None = None) -> float:
    """Return the per-attempt backend timeout in seconds."""
    ms = BACKEND_TIMEOUT_MS if timeout_ms is None else int(timeout_ms)
    return max(0.001, ms / 1000.0)
