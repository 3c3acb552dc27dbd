"""
core_models: request / result types shared by the gateway and validator.

Response JSON Schemas live next to this module under ``schemas/``.
"""

from .models import (
    OperationKind,
    AnalyzeRequest, CycleFindRequest, PaymentRequest, DomainRequest,
    AnalyzeResult, CycleFindResult, PaymentResult, BackendResult,
    RESULT_MODELS,
)

__all__ = [
    "OperationKind",
    "AnalyzeRequest", "CycleFindRequest", "PaymentRequest", "DomainRequest",
    "AnalyzeResult", "CycleFindResult", "PaymentResult", "BackendResult",
    "RESULT_MODELS",
]
