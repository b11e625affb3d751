"""
envelope_sdk.tier0_core.config
────────────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic; invalid values raise at the
first get_config() call, not deep inside a request.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from envelope_sdk.tier0_core.conflicts import (
    DEFAULT_CONFLICT_ERROR_TYPES,
    ConflictCategory,
)


class EnvelopeConfig(BaseSettings):
    """
    Typed configuration for the error-envelope layer.
    All env vars are prefixed with PLATFORM_ so the SDK shares one namespace
    with the rest of the service toolkit.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="PLATFORM_LOG_LEVEL")
    log_format: str = Field(default="json", alias="PLATFORM_LOG_FORMAT")
    log_max_field_length: int = Field(
        default=2048, alias="PLATFORM_LOG_MAX_FIELD_LENGTH", gt=0
    )

    # ── Error reporting ───────────────────────────────────────────────────────
    error_backend: str = Field(default="none", alias="PLATFORM_ERROR_BACKEND")

    # ── Classification ────────────────────────────────────────────────────────
    # JSON object in the environment, merged over the defaults, e.g.
    # PLATFORM_CONFLICT_ERROR_TYPES='{"myapp.db.VersionMismatch": "optimistic_lock"}'
    conflict_error_types: dict[str, ConflictCategory] = Field(
        default_factory=lambda: dict(DEFAULT_CONFLICT_ERROR_TYPES),
        alias="PLATFORM_CONFLICT_ERROR_TYPES",
    )

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = {"json", "console"}
        if v.lower() not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("error_backend")
    @classmethod
    def validate_error_backend(cls, v: str) -> str:
        allowed = {"none", "sentry", "otel"}
        if v.lower() not in allowed:
            raise ValueError(f"error_backend must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("conflict_error_types")
    @classmethod
    def extend_conflict_error_types(
        cls, v: dict[str, ConflictCategory]
    ) -> dict[str, ConflictCategory]:
        return {**DEFAULT_CONFLICT_ERROR_TYPES, **v}


@lru_cache(maxsize=1)
def get_config() -> EnvelopeConfig:
    """
    Return the singleton config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return EnvelopeConfig()


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()


__all__ = ["EnvelopeConfig", "get_config"]
