"""
field_uuid.tier0_core.config
──────────────────────────────
Typed plugin configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic. Invalid values raise
ConfigurationError at startup, not at runtime.

Minimal stack: pydantic-settings + python-dotenv
Env prefix:    FIELD_UUID_  (e.g. FIELD_UUID_DEFAULT_VERSION=v7)

The config object is built once by the entry point and handed to every
component explicitly; nothing below reads it from ambient state.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from field_uuid.tier0_core.errors import ConfigurationError

LOG_LEVELS = ("debug", "info", "warn", "error")


class FieldUuidConfig(BaseSettings):
    """
    Plugin configuration. Mirrors the admin-facing settings of the field
    plus the service settings needed to run the admin API.
    """

    model_config = SettingsConfigDict(
        env_prefix="FIELD_UUID_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ── Identifier policy ─────────────────────────────────────────────────────
    default_version: Literal["v4", "v7"] = "v4"
    auto_generate: bool = True
    validate_uniqueness: bool = True
    allow_manual_edit: bool = False
    max_retry_attempts: int = Field(default=3, ge=1)
    auto_migrate: bool = False
    # A create whose value already exists but which carries no record
    # identity is kept as-is (publish replay) when True, reassigned when False.
    keep_unattributed_duplicates: bool = True

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = "info"
    log_format: Literal["json", "console"] = "json"

    # ── Storage ───────────────────────────────────────────────────────────────
    store_backend: Literal["sql", "memory"] = "sql"
    database_url: str = "sqlite+aiosqlite:///./field_uuid.db"

    # ── Admin API ─────────────────────────────────────────────────────────────
    app_version: str = "1.0.0"
    identity_provider: Literal["mock", "static"] = "mock"
    admin_token: str = ""

    # ── Metrics ───────────────────────────────────────────────────────────────
    metrics_enabled: bool = False
    metrics_port: int = 8001

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.lower() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {v!r}")
        return v.lower()

    @field_validator("default_version", mode="before")
    @classmethod
    def normalize_version(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @property
    def logging_level(self) -> str:
        """Stdlib logging level name for log_level."""
        return "WARNING" if self.log_level == "warn" else self.log_level.upper()


def load_config(**overrides: Any) -> FieldUuidConfig:
    """
    Build a config from env + overrides. Raises ConfigurationError naming
    every offending setting instead of pydantic's error type.
    """
    try:
        return FieldUuidConfig(**overrides)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(
            "configuration_error",
            user_message=f"Invalid field_uuid configuration: {problems}",
            settings=sorted({".".join(str(loc) for loc in err["loc"]) for err in exc.errors()}),
        ) from exc


@lru_cache(maxsize=1)
def get_config() -> FieldUuidConfig:
    """
    Return the process config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return load_config()


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()
