"""
httpwrap.tier0_core.config
────────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic and prefixed with HTTPWRAP_.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from httpwrap.tier0_core.errors import ConfigurationError


class WrapperConfig(BaseSettings):
    """
    Typed wrapper configuration. Builders read it when they acquire a
    transport or seed defaults; per-request behaviour is set via options.
    """

    model_config = SettingsConfigDict(
        env_prefix="HTTPWRAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Transport ─────────────────────────────────────────────────────────────
    transport_backend: str = Field(default="httpx")
    verify_ssl: bool = Field(default=True)
    max_redirects: int = Field(default=20, ge=0)
    proxy: str | None = Field(default=None)

    # ── Defaults ──────────────────────────────────────────────────────────────
    default_user_agent: str = Field(default="firefox")

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"log_format must be 'json' or 'console', got {v!r}")
        return v.lower()


@lru_cache(maxsize=1)
def get_config() -> WrapperConfig:
    """
    Return the singleton wrapper config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    Invalid values raise ConfigurationError.
    """
    try:
        return WrapperConfig()
    except ValidationError as exc:
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        raise ConfigurationError(
            "invalid_configuration",
            f"Invalid HTTPWRAP_ configuration: {', '.join(fields)}",
            detail=str(exc),
            fields=fields,
        ) from exc


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()


__all__ = ["WrapperConfig", "get_config"]
