from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from core_config.constants import (
    ARTIFACT_ALIAS_MARKER,
    ARTIFACT_EXTENSION,
    BACKEND_CONNECT_TIMEOUT_MS,
    BACKEND_TIMEOUT_MS,
    DEFAULT_CONTAINER,
    ERROR_DETAIL_MAX_CHARS,
    FALLBACK_ARTIFACT,
    GATEWAY_PORT,
)

_METHODS = ("GET", "POST")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field(default="dev", alias="ENVIRONMENT")
    service_log_level: str = Field(default="INFO", alias="SERVICE_LOG_LEVEL")
    gateway_port: int = Field(default=GATEWAY_PORT, alias="GATEWAY_PORT")
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")

    # Auth: the ingress forwards identity claims as X-User-* headers.
    auth_disabled: bool = Field(default=False, alias="AUTH_DISABLED")

    # Backend
    matrix_api_base_url: str = Field(default="http://matrix-api:8000", alias="MATRIX_API_BASE_URL")
    backend_timeout_ms: int = Field(default=BACKEND_TIMEOUT_MS, alias="BACKEND_TIMEOUT_MS")
    backend_connect_timeout_ms: int = Field(default=BACKEND_CONNECT_TIMEOUT_MS, alias="BACKEND_CONNECT_TIMEOUT_MS")
    backend_listing_path: str = Field(default="/artifacts", alias="BACKEND_LISTING_PATH")
    backend_analyze_path: str = Field(default="/analyze", alias="BACKEND_ANALYZE_PATH")
    backend_cycle_find_path: str = Field(default="/cycle/find", alias="BACKEND_CYCLE_FIND_PATH")
    backend_payment_path: str = Field(default="/payment", alias="BACKEND_PAYMENT_PATH")
    backend_analyze_method: str = Field(default="POST", alias="BACKEND_ANALYZE_METHOD")
    backend_cycle_find_method: str = Field(default="POST", alias="BACKEND_CYCLE_FIND_METHOD")
    backend_payment_method: str = Field(default="POST", alias="BACKEND_PAYMENT_METHOD")

    # Artifacts
    matrix_container: str = Field(default=DEFAULT_CONTAINER, alias="MATRIX_CONTAINER")
    artifact_extension: str = Field(default=ARTIFACT_EXTENSION, alias="ARTIFACT_EXTENSION")
    artifact_alias_marker: str = Field(default=ARTIFACT_ALIAS_MARKER, alias="ARTIFACT_ALIAS_MARKER")
    fallback_artifact: str = Field(default=FALLBACK_ARTIFACT, alias="FALLBACK_ARTIFACT")

    # Error shaping
    error_detail_max_chars: int = Field(default=ERROR_DETAIL_MAX_CHARS, alias="ERROR_DETAIL_MAX_CHARS")

    # HTTP client pool
    http_max_keepalive: int = Field(default=20, alias="HTTP_MAX_KEEPALIVE")
    http_max_connections: int = Field(default=100, alias="HTTP_MAX_CONNECTIONS")
    http_keepalive_expiry: float = Field(default=30.0, alias="HTTP_KEEPALIVE_EXPIRY")

    @field_validator("matrix_container", "fallback_artifact", "artifact_extension")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("backend_analyze_method", "backend_cycle_find_method", "backend_payment_method")
    @classmethod
    def _known_method(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in _METHODS:
            raise ValueError(f"unsupported method {v!r}; expected one of {_METHODS}")
        return v


def get_settings() -> "Settings":
    return Settings()  # type: ignore
