"""
core_logging: JSON-lines logging with request-id binding, stage breadcrumbs
and end-of-request rollups.
"""
from .logger import (
    get_logger,
    log_stage,
    log_once_process,
    bind_request_id,
    current_request_id,
    record_error,
    emit_request_summary,
    emit_request_error_summary,
)

__all__ = [
    "get_logger",
    "log_stage",
    "log_once_process",
    "bind_request_id",
    "current_request_id",
    "record_error",
    "emit_request_summary",
    "emit_request_error_summary",
]
