"""Data models for recorder-proxy.

All models use Pydantic v2. Wire models mirror the recorder's JSON contracts;
configuration models mirror the YAML runtime config.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


T = TypeVar("T")


# =============================================================================
# Wire Models
# =============================================================================


class SimpleResult(BaseModel, Generic[T]):
    """Envelope used by endpoints that answer ``{"result": ..., "errorMessage": ...}``."""

    model_config = ConfigDict(populate_by_name=True)

    result: T | None = Field(default=None, description="The payload")
    error_message: str | None = Field(
        default=None, alias="errorMessage", description="Server-side error text, if any"
    )


class RestError(BaseModel):
    """Body of a server-classified HTTP 500."""

    detail: str = Field(description="Human-readable error detail")


# =============================================================================
# Runtime Configuration Models
# =============================================================================


class TargetConfig(BaseModel):
    """Configuration for a single recorder service."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="Base URL of the recorder REST service")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Extra headers (supports ${ENV_VAR} substitution)",
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    proxy: str | None = Field(
        default=None, description="Outbound proxy URL; credentials may be embedded"
    )
    verify_ssl: bool = Field(default=True, description="Verify server certificates")
    ca_bundle: str | None = Field(default=None, description="Path to a CA bundle")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


class LoggingConfig(BaseModel):
    """Logging settings."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO", description="Root log level name")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{v}'")
        return level


class RuntimeConfig(BaseModel):
    """Top-level runtime configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    targets: dict[str, TargetConfig] = Field(description="Target name -> config mapping")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging settings")
