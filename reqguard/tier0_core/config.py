"""
reqguard.tier0_core.config
───────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. These values are the defaults for any engine option a
Validator is constructed without.

Minimal stack: pydantic-settings
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_DRAFTS = frozenset({
    "draft4", "draft6", "draft7", "draft2019-09", "draft2020-12",
})


class ReqGuardConfig(BaseSettings):
    """
    Process-wide defaults. All env vars are prefixed with REQGUARD_.
    """

    model_config = SettingsConfigDict(
        env_prefix="REQGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Schema engine ─────────────────────────────────────────────────────────
    default_draft: str = Field(default="draft7")
    all_errors: bool = Field(default=True)
    format_check: bool = Field(default=True)
    strict_schemas: bool = Field(default=True)

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # ── Error reporting ───────────────────────────────────────────────────────
    error_backend: str = Field(default="none")

    @field_validator("default_draft")
    @classmethod
    def validate_draft(cls, v: str) -> str:
        if v.lower() not in SUPPORTED_DRAFTS:
            raise ValueError(
                f"default_draft must be one of {sorted(SUPPORTED_DRAFTS)}, got {v!r}"
            )
        return v.lower()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"log_format must be 'json' or 'console', got {v!r}")
        return v.lower()


@lru_cache(maxsize=1)
def get_config() -> ReqGuardConfig:
    """
    Return the singleton config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return ReqGuardConfig()


def _reset_config() -> None:
    """For tests — clear the config cache."""
    get_config.cache_clear()


__sdk_export__ = {
    "surface": "both",
    "exports": ["get_config", "ReqGuardConfig"],
    "description": "Typed env configuration for engine defaults and logging",
    "tier": "tier0_core",
    "module": "config",
}
