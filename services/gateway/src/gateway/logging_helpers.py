from __future__ import annotations
from typing import Any
from core_logging import log_stage as _log_stage, get_logger

_logger = get_logger("gateway")
_audit = get_logger("audit")

def stage(stage_name: str, action: str, /, **fields: Any) -> None:
    """Gateway breadcrumb: ``stage("send", "verb_fallback", operation=...)``."""
    _log_stage(_logger, stage_name, action, service="gateway", **fields)

def audit(event: str, /, **fields: Any) -> None:
    """Audit trail for state-changing operations; never summarised away."""
    _log_stage(_audit, "audit", event, service="gateway", **fields)
