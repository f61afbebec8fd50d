"""
Bearer Configuration - Pydantic Settings for the token lifecycle engine.

Settings are constructed once by the host application and passed explicitly
to the manager and its conductors. There is no module-level settings instance.
FAIL FAST - Invalid strategy parameters are rejected at construction time.
"""

import sys
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class TokenTypeConfig(BaseModel):
    """Declarative definition of a token type (prefix, defaults, capabilities)."""

    name: str = Field(..., min_length=1)
    prefix: str = Field(..., min_length=1, max_length=32)
    abilities: list[str] = Field(default_factory=lambda: ["*"])
    expiration: int | None = Field(None, ge=0)  # minutes, None = never
    rate_limit: int | None = Field(None, ge=0)  # requests per minute
    server_side_only: bool = False
    domain_restrictable: bool | None = None  # None = follow client-side flag


def _default_token_types() -> dict[str, TokenTypeConfig]:
    return {
        "sk": TokenTypeConfig(
            name="Secret",
            prefix="sk",
            abilities=["*"],
            expiration=None,
            rate_limit=None,
            server_side_only=True,
        ),
        "pk": TokenTypeConfig(
            name="Publishable",
            prefix="pk",
            abilities=["read"],
            expiration=60 * 24 * 30,
            rate_limit=1000,
            server_side_only=False,
        ),
        "rk": TokenTypeConfig(
            name="Restricted",
            prefix="rk",
            abilities=[],
            expiration=60 * 24 * 365,
            rate_limit=100,
            server_side_only=True,
        ),
    }


class Settings(BaseSettings):
    """Engine settings loaded from BEARER_* environment variables."""

    # Database Configuration
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # Environments
    default_environment: str = "test"

    # Component defaults (names resolved through the registries)
    default_generator: str = "seam"
    default_hasher: str = "sha256"
    default_audit_driver: str = "database"
    default_revocation_strategy: str = "none"
    default_rotation_strategy: str = "immediate"

    # Strategy parameters
    grace_period_minutes: int = 60
    partial_revocation_types: list[str] = Field(default_factory=lambda: ["sk", "rk"])
    timed_revocation_delay_minutes: int = 60
    max_derivation_depth: int = 3

    # Per-type revocation mode used when a caller does not pick one
    revocation_modes: dict[str, str] = Field(
        default_factory=lambda: {"sk": "cascade", "pk": "none", "rk": "none"}
    )

    # Token types and group helper aliases
    token_types: dict[str, TokenTypeConfig] = Field(default_factory=_default_token_types)
    group_helpers: dict[str, str] = Field(
        default_factory=lambda: {"secret": "sk", "publishable": "pk", "restricted": "rk"}
    )

    # Retention (pruning)
    audit_retention_days: int = 90
    prune_expired_hours: int = 24

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    service_name: str = "bearer"
    service_version: str = "0.1.0"

    # Metrics
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="BEARER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate configuration at construction.

        Strategy parameters that would silently produce invalid tokens
        (negative grace periods, zero depth) are rejected here.
        """
        errors: list[str] = []

        if self.database_url and not self.database_url.startswith(
            ("postgresql", "postgres", "sqlite")
        ):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL or SQLite URL, got: {self.database_url[:20]}..."
            )

        if self.max_derivation_depth < 1:
            errors.append(f"max_derivation_depth must be >= 1, got {self.max_derivation_depth}")

        if self.grace_period_minutes < 0:
            errors.append(f"grace_period_minutes must be >= 0, got {self.grace_period_minutes}")

        if self.timed_revocation_delay_minutes < 0:
            errors.append(
                "timed_revocation_delay_minutes must be >= 0, "
                f"got {self.timed_revocation_delay_minutes}"
            )

        if self.audit_retention_days < 0:
            errors.append(f"audit_retention_days must be >= 0, got {self.audit_retention_days}")

        if self.prune_expired_hours < 0:
            errors.append(f"prune_expired_hours must be >= 0, got {self.prune_expired_hours}")

        if not self.default_environment:
            errors.append("default_environment cannot be empty")
        elif "_" in self.default_environment:
            errors.append(f"default_environment cannot contain '_', got {self.default_environment}")

        for alias, type_key in self.group_helpers.items():
            if type_key not in self.token_types:
                errors.append(f"group helper '{alias}' points at unknown token type '{type_key}'")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "BEARER CONFIGURATION ERROR",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    def token_type_maps(self) -> dict[str, dict[str, Any]]:
        """Token type definitions as plain maps for ConfigurableTokenType.from_config."""
        return {key: definition.model_dump() for key, definition in self.token_types.items()}

    def revocation_mode_for(self, token_type: str) -> str:
        """Configured revocation strategy name for a token type."""
        return self.revocation_modes.get(token_type, self.default_revocation_strategy)


def get_settings(**overrides: Any) -> Settings:
    """Build a settings instance (environment first, explicit overrides last)."""
    return Settings(**overrides)
