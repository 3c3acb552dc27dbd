from .artifact_names import (
    extract_trailing_timestamp,
    format_timestamp,
    strip_timestamps,
    next_versioned_name,
)
from .artifact_index import parse_listing, resolve_latest

__all__ = [
    "extract_trailing_timestamp",
    "format_timestamp",
    "strip_timestamps",
    "next_versioned_name",
    "parse_listing",
    "resolve_latest",
]
