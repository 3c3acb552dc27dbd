from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from core_models.normalize import coerce_bool, coerce_mapping, coerce_str_list, coerce_text


class OperationKind(str, Enum):
    analyze = "analyze"
    cycle_find = "cycle_find"
    payment = "payment"


# ── Requests sent to the backend ────────────────────────────────────────────
# container / blob_name / node_a / out_base are always computed server side.

class _DomainRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    container: str = Field(min_length=1)
    blob_name: str = Field(min_length=1)

    def payload(self) -> Dict[str, Any]:
        """Wire body for the backend; unset optionals are omitted."""
        return self.model_dump(exclude={"kind"}, exclude_none=True)

    def authoritative(self) -> Dict[str, Any]:
        """The fields the gateway computed, echoed back to the caller."""
        keys = ("container", "blob_name", "node_a", "out_base")
        return {k: getattr(self, k) for k in keys if getattr(self, k, None) is not None}


class AnalyzeRequest(_DomainRequest):
    kind: Literal["analyze"] = "analyze"


class CycleFindRequest(_DomainRequest):
    kind: Literal["cycle_find"] = "cycle_find"
    node_a: str
    node_b: str
    out_base: str
    apply_settlement: Optional[bool] = None
    options: Optional[Any] = None


class PaymentRequest(_DomainRequest):
    kind: Literal["payment"] = "payment"
    node_a: str
    node_b: str
    amount: int = Field(gt=0)
    out_base: str


DomainRequest = Annotated[
    Union[AnalyzeRequest, CycleFindRequest, PaymentRequest],
    Field(discriminator="kind"),
]


# ── Results received from the backend ───────────────────────────────────────
# Key sets are enforced by the JSON schemas; these models type the values.

class _BackendResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    details: Optional[Dict[str, Any]] = None

    @field_validator("details", mode="before")
    @classmethod
    def _details_mapping(cls, v):
        return coerce_mapping(v)


class AnalyzeResult(_BackendResult):
    kind: Literal["analyze"] = "analyze"
    status: str = "unknown"
    blob_name: Optional[str] = None
    container: Optional[str] = None
    message: Optional[str] = None
    nodes: Optional[Any] = None
    edges: Optional[Any] = None
    summary: Optional[Any] = None
    stats: Optional[Any] = None

    @field_validator("status", "blob_name", "container", "message", mode="before")
    @classmethod
    def _text(cls, v):
        return coerce_text(v)


class CycleFindResult(_BackendResult):
    kind: Literal["cycle_find"] = "cycle_find"
    found: bool
    cycle: Optional[List[str]] = None

    @field_validator("found", mode="before")
    @classmethod
    def _found(cls, v):
        return coerce_bool(v)

    @field_validator("cycle", mode="before")
    @classmethod
    def _cycle(cls, v):
        return coerce_str_list(v)


class PaymentResult(_BackendResult):
    kind: Literal["payment"] = "payment"
    status: str
    written_blob: Optional[str] = None
    message: Optional[str] = None
    note: Optional[str] = None

    @field_validator("status", "written_blob", "message", "note", mode="before")
    @classmethod
    def _text(cls, v):
        return coerce_text(v)

    @computed_field  # type: ignore[misc]
    @property
    def ok(self) -> bool:
        return self.status.strip().lower() == "ok"


BackendResult = Annotated[
    Union[AnalyzeResult, CycleFindResult, PaymentResult],
    Field(discriminator="kind"),
]

RESULT_MODELS: Dict[OperationKind, type[BaseModel]] = {
    OperationKind.analyze: AnalyzeResult,
    OperationKind.cycle_find: CycleFindResult,
    OperationKind.payment: PaymentResult,
}
