from __future__ import annotations

from dataclasses import dataclass

from core_config import Settings
from core_models import OperationKind


@dataclass(frozen=True)
class Operation:
    """Where and how one operation reaches the backend."""

    kind: OperationKind
    path: str
    method: str

    @property
    def alternate_method(self) -> str:
        return "GET" if self.method == "POST" else "POST"


def operation_for(kind: OperationKind | str, settings: Settings) -> Operation:
    kind = OperationKind(kind)
    path, method = {
        OperationKind.analyze: (settings.backend_analyze_path, settings.backend_analyze_method),
        OperationKind.cycle_find: (settings.backend_cycle_find_path, settings.backend_cycle_find_method),
        OperationKind.payment: (settings.backend_payment_path, settings.backend_payment_method),
    }[kind]
    return Operation(kind=kind, path=path, method=method)
