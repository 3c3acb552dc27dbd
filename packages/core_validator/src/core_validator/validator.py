from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft202012Validator
from pydantic import ValidationError

import core_models  # used to locate the canonical schemas directory
from core_models import OperationKind, RESULT_MODELS
from core_logging import get_logger, log_stage, log_once_process

logger = get_logger("core_validator")

_SCHEMA_FILES: Dict[OperationKind, str] = {
    OperationKind.analyze: "analyze_result.json",
    OperationKind.cycle_find: "cycle_find_result.json",
    OperationKind.payment: "payment_result.json",
}
_VALIDATORS: Dict[OperationKind, Draft202012Validator] = {}


class ContractViolation(Exception):
    """The backend answered 2xx with a body outside the agreed shape."""

    def __init__(self, kind: OperationKind | str, errors: List[str]):
        self.kind = OperationKind(kind)
        self.errors = list(errors)
        super().__init__(f"{self.kind.value} response violates contract: " + "; ".join(self.errors))


def _schemas_dir() -> Path:
    """
    Resolve the schemas directory used by the validator.
    Priority:
      1) MATRIX_SCHEMAS_DIR (explicit override for tests / dev)
      2) core_models/schemas (canonical, versioned with the repo)
    """
    env_dir = os.getenv("MATRIX_SCHEMAS_DIR")
    if env_dir:
        p = Path(env_dir).expanduser().resolve()
        if p.exists():
            log_once_process(logger, "schemas_dir", event="core_validator.resolved_schemas_dir", dir=str(p))
            return p
        logger.warning("core_validator.schemas_dir_missing_env", extra={"dir": str(p)})
    default_dir = (Path(core_models.__file__).parent / "schemas").resolve()
    log_once_process(logger, "schemas_dir", event="core_validator.resolved_schemas_dir", dir=str(default_dir))
    return default_dir


def _validator_for(kind: OperationKind) -> Draft202012Validator:
    v = _VALIDATORS.get(kind)
    if v is None:
        p = _schemas_dir() / _SCHEMA_FILES[kind]
        with open(p, "r", encoding="utf-8") as f:
            schema = json.load(f)
        Draft202012Validator.check_schema(schema)
        v = Draft202012Validator(schema)
        _VALIDATORS[kind] = v
    return v


def _describe(err) -> str:
    where = "/".join(str(p) for p in err.absolute_path) or "<root>"
    return f"{where}: {err.message}"


def validate_response(kind: OperationKind | str, raw: Any):
    """
    Check *raw* against the response contract for *kind* and return the typed
    result (``AnalyzeResult`` / ``CycleFindResult`` / ``PaymentResult``).

    The key set is strict: a missing required key or any unrecognised
    top-level key raises :class:`ContractViolation`.  Values are then coerced
    leniently (``"true"`` → ``True``, ``1`` → ``True``, JSON-array strings →
    lists); values that cannot be coerced also raise ``ContractViolation``.
    """
    kind = OperationKind(kind)
    if not isinstance(raw, dict):
        raise ContractViolation(kind, [f"<root>: expected a JSON object, got {type(raw).__name__}"])

    errors = sorted(_validator_for(kind).iter_errors(raw), key=lambda e: list(e.absolute_path))
    if errors:
        messages = [_describe(e) for e in errors]
        log_stage(logger, "validate", "contract_violation",
                  operation=kind.value, errors=messages, keys=sorted(raw.keys()))
        raise ContractViolation(kind, messages)

    try:
        return RESULT_MODELS[kind].model_validate(raw)
    except ValidationError as exc:
        messages = [
            f"{'/'.join(str(p) for p in e['loc']) or '<root>'}: {e['msg']}" for e in exc.errors()
        ]
        log_stage(logger, "validate", "contract_violation",
                  operation=kind.value, errors=messages, keys=sorted(raw.keys()))
        raise ContractViolation(kind, messages) from exc


__all__ = ["ContractViolation", "validate_response"]
