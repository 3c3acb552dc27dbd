from enum import Enum

class ErrorCode(str, Enum):
    """
    Canonical error codes for the public error envelope.
    The first five are the only outcomes a proxied operation can fail with.
    """
    validation_failed         = "validation_failed"
    backend_unreachable       = "backend_unreachable"
    backend_rejected          = "backend_rejected"
    backend_faulted           = "backend_faulted"
    contract_violation        = "contract_violation"
    policy_denied             = "policy_denied"
    internal                  = "internal"

__all__ = ["ErrorCode"]
