"""
Server-side assembly of backend requests.

Callers choose the counterparty, the amount and a few options.  Everything
that decides *what* is operated on and *on whose behalf* (container, target
artifact, output base name, acting node) is recomputed here on every
request, whatever the caller sent.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from core_config import Settings
from core_config.constants import (
    AMOUNT_MAX_INTEGER_DIGITS,
    ARTIFACT_PIN_RE,
    AUTHORITATIVE_FIELDS,
    NODE_ID_MAX_LEN,
    NODE_ID_RE,
)
from core_models import (
    AnalyzeRequest,
    CycleFindRequest,
    OperationKind,
    PaymentRequest,
)
from core_models.normalize import coerce_bool
from core_storage.artifact_index import resolve_latest
from core_storage.artifact_names import strip_timestamps
from core_utils.identity import resolve_node_identity

from .errors import BackendStatusError, ValidationFailed
from .logging_helpers import stage as log_stage

ArtifactLister = Callable[[str], Awaitable[List[str]]]


def validate_node_id(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f"{field} is required", field=field)
    s = value.strip()
    if not NODE_ID_RE.fullmatch(s):
        raise ValidationFailed(
            f"{field} must be 1-{NODE_ID_MAX_LEN} characters of letters, digits, '_' or '-'",
            field=field,
        )
    return s


def validate_amount(value: Any) -> int:
    """A strictly positive whole number with at most 12 integer digits."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationFailed("amount is required", field="amount")
    if isinstance(value, bool):
        raise ValidationFailed("amount must be a number", field="amount")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationFailed("amount must be a number", field="amount") from None
    if not d.is_finite():
        raise ValidationFailed("amount must be a number", field="amount")
    if d <= 0:
        raise ValidationFailed("amount must be greater than zero", field="amount")
    if d != d.to_integral_value():
        raise ValidationFailed("amount must be a whole number", field="amount")
    amount = int(d)
    if len(str(amount)) > AMOUNT_MAX_INTEGER_DIGITS:
        raise ValidationFailed(
            f"amount must have at most {AMOUNT_MAX_INTEGER_DIGITS} digits", field="amount"
        )
    return amount


def validate_flag(value: Any, *, field: str) -> Optional[bool]:
    if value is None:
        return None
    try:
        return coerce_bool(value)
    except ValueError:
        raise ValidationFailed(f"{field} must be true or false", field=field) from None


class AuthoritativeRequestBuilder:
    def __init__(self, settings: Settings, list_artifacts: ArtifactLister):
        self.settings = settings
        self._list_artifacts = list_artifacts

    def validate_pin(self, value: Any) -> Optional[str]:
        """Optional artifact pin for read-only operations."""
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        ext = self.settings.artifact_extension
        # Used verbatim as the override, so surrounding whitespace is an error, not trimmed.
        if not isinstance(value, str) or not ARTIFACT_PIN_RE.fullmatch(value) or not value.endswith(ext):
            raise ValidationFailed(f"artifact must be a '{ext}' file name", field="artifact")
        return value

    def acting_node(self, principal: Optional[Mapping[str, Any]]) -> str:
        node_a = resolve_node_identity(principal)
        if not NODE_ID_RE.fullmatch(node_a):
            raise ValidationFailed(
                "authenticated identity cannot be used as a node identifier", field="node_a"
            )
        return node_a

    async def resolve_artifact(self, container: str, pin: Optional[str] = None) -> str:
        """Current artifact in *container*; listing failures fall back to the configured default."""
        s = self.settings
        listing: List[str] = []
        if pin is None:
            try:
                listing = await self._list_artifacts(container)
            except (httpx.RequestError, BackendStatusError) as exc:
                log_stage("resolve", "artifact_listing_failed", container=container,
                          error=str(exc), error_type=exc.__class__.__name__)
        artifact = resolve_latest(
            listing, pin,
            extension=s.artifact_extension,
            alias_marker=s.artifact_alias_marker,
            fallback=s.fallback_artifact,
        )
        log_stage("resolve", "artifact_resolved", container=container, artifact=artifact,
                  pinned=pin is not None, listing_size=len(listing))
        return artifact

    async def assemble(
        self,
        kind: OperationKind | str,
        caller_fields: Optional[Mapping[str, Any]],
        principal: Optional[Mapping[str, Any]],
    ):
        """
        Validate caller fields, then build the backend request with every
        authoritative field recomputed.  Raises ``ValidationFailed`` before
        any network call when a caller field is unusable.
        """
        kind = OperationKind(kind)
        fields: Dict[str, Any] = dict(caller_fields or {})

        ignored = sorted(k for k in fields if k in AUTHORITATIVE_FIELDS
                         or (k == "artifact" and kind is not OperationKind.analyze))
        if ignored:
            log_stage("assemble", "authoritative_field_ignored", operation=kind.value, fields=ignored)

        container = self.settings.matrix_container

        if kind is OperationKind.analyze:
            pin = self.validate_pin(fields.get("artifact"))
            artifact = await self.resolve_artifact(container, pin)
            return AnalyzeRequest(container=container, blob_name=artifact)

        node_b = validate_node_id(fields.get("node_b"), field="node_b")
        if kind is OperationKind.payment:
            amount = validate_amount(fields.get("amount"))
            node_a = self.acting_node(principal)
            artifact = await self.resolve_artifact(container)
            return PaymentRequest(
                container=container, blob_name=artifact,
                node_a=node_a, node_b=node_b, amount=amount,
                out_base=strip_timestamps(artifact),
            )

        apply_settlement = validate_flag(fields.get("apply_settlement"), field="apply_settlement")
        node_a = self.acting_node(principal)
        artifact = await self.resolve_artifact(container)
        return CycleFindRequest(
            container=container, blob_name=artifact,
            node_a=node_a, node_b=node_b,
            apply_settlement=apply_settlement,
            options=fields.get("options"),
            out_base=strip_timestamps(artifact),
        )
