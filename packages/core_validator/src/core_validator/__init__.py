"""
Public API for the core_validator package.

Strict response-contract validation for backend payloads.
"""

from .validator import (  # noqa: F401
    ContractViolation,
    validate_response,
)

__all__ = [
    "ContractViolation",
    "validate_response",
]
