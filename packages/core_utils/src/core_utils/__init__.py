from .ids import compute_request_id, generate_request_id
from .identity import claims_from_headers, local_part, resolve_node_identity
from . import jsonx

__all__ = [
    "compute_request_id",
    "generate_request_id",
    "claims_from_headers",
    "local_part",
    "resolve_node_identity",
    "jsonx",
]
