"""
Configuration management for the fleet backend.

Settings are loaded with pydantic-settings from environment variables and
``.env`` files. The base ``.env`` is read first, then the file for the
detected environment (``.env.production`` and so on) overrides it.

Missing or malformed values abort startup with a ConfigurationError that
lists every offending field.
"""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "production"


class StoreBackend(str, Enum):
    """Document store implementations the service can run against."""
    MONGODB = "mongodb"
    MEMORY = "memory"


def _detect_environment() -> Environment:
    """
    Detect the current environment from ENVIRONMENT, falling back to NODE_ENV.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if
        unset or unrecognised.
    """
    env_value = os.environ.get("ENVIRONMENT") or os.environ.get("NODE_ENV") or "development"
    try:
        return Environment(env_value.lower().strip())
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    Files are loaded in order, with later files overriding earlier ones.

    Args:
        environment: The target environment.

    Returns:
        Tuple of .env file paths to load.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.TEST: ".env.test",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    return (".env", env_file_map.get(environment, ".env.development"))


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    ``MONGODB_URI`` is mandatory while the MongoDB backend is selected; the
    in-memory backend exists for local development and tests and is refused
    in production.
    """

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        validation_alias=AliasChoices("environment", "node_env"),
        description="Deployment environment (ENVIRONMENT or NODE_ENV)"
    )
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP listen port")

    # Document store
    store_backend: StoreBackend = Field(
        default=StoreBackend.MONGODB,
        description="Record store implementation: 'mongodb' or 'memory'"
    )
    mongodb_uri: Optional[str] = Field(
        default=None,
        description="MongoDB connection string (a replica set is needed for change streams)"
    )
    mongodb_database: str = Field(default="fleet-management")
    mongodb_collection: str = Field(default="vehicles")
    mongodb_timeout_ms: int = Field(
        default=5000,
        ge=100,
        description="Server selection timeout for the MongoDB client"
    )
    store_failure_threshold: int = Field(
        default=3,
        ge=1,
        description="Consecutive store failures before the circuit opens"
    )
    store_recovery_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds the store circuit stays open before a probe call"
    )

    # Reseed endpoint
    init_api_token: Optional[str] = Field(
        default=None,
        description="Bearer token required by POST /api/init in production"
    )

    # Change feed / real-time channel
    change_feed_initial_delay: float = Field(default=1.0, gt=0)
    change_feed_backoff_base: float = Field(default=2.0, ge=1.0)
    change_feed_max_delay: float = Field(default=30.0, gt=0)
    change_feed_start_timeout: float = Field(
        default=5.0,
        gt=0,
        description="How long startup waits for the change feed before carrying on"
    )
    broadcast_send_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Per-subscriber send timeout during a broadcast"
    )
    heartbeat_interval: float = Field(
        default=30.0,
        ge=0,
        description="Seconds between keep-alive heartbeats to subscribers; 0 disables them"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_requests_per_minute: int = Field(
        default=100,
        ge=1,
        le=100000,
        description="Maximum API requests per minute per IP"
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    health_check_timeout: float = Field(default=5.0, gt=0)

    # CORS; accepts "a,b" as well as a JSON list
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("mongodb_uri")
    @classmethod
    def validate_mongodb_uri(cls, v: Optional[str]) -> Optional[str]:
        """Validate the MongoDB connection string scheme."""
        if v is None:
            return None
        v = v.strip().strip('"')
        if not v:
            return None
        if not (v.startswith("mongodb://") or v.startswith("mongodb+srv://")):
            raise ValueError("mongodb_uri must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        """Accept a comma-separated string or a JSON array."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                return json.loads(v)
            return [origin for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins format and reject wildcard patterns."""
        validated_origins = []
        for origin in v:
            origin = origin.strip()
            if origin == "*" or "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are not allowed in CORS origins: {origin}. "
                    "Specify exact frontend domains."
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
            validated_origins.append(origin.rstrip("/"))
        return validated_origins

    @model_validator(mode="after")
    def validate_store_config(self) -> "Settings":
        """Require a connection string for MongoDB and keep production off the memory store."""
        if self.store_backend == StoreBackend.MONGODB and not self.mongodb_uri:
            raise ValueError("mongodb_uri is required when store_backend is 'mongodb'")
        if (
            self.store_backend == StoreBackend.MEMORY
            and self.environment == Environment.PRODUCTION
        ):
            raise ValueError("store_backend 'memory' is not allowed in production")
        if self.change_feed_max_delay < self.change_feed_initial_delay:
            raise ValueError("change_feed_max_delay must be >= change_feed_initial_delay")
        return self


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Create Settings for a specific environment.

    Detects the environment from ENVIRONMENT/NODE_ENV when not given and
    layers the matching ``.env`` file over the base one.

    Args:
        environment: Optional environment override.

    Returns:
        Settings: Validated settings for the environment.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [f for f in env_files if Path(f).exists()] or list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore",
                populate_by_name=True,
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        # Pydantic ValidationError exposes per-field errors
        if hasattr(e, "errors"):
            for error in e.errors():
                field_name = ".".join(str(loc) for loc in error.get("loc", [])) or "settings"
                error_type = error.get("type", "")
                error_msg = error.get("msg", str(error))

                if error_type == "missing":
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings, loading and caching them on first use.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() reloads."""
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Settings) -> None:
    """
    Run cross-field checks that must pass before the service accepts requests.

    Raises:
        ConfigurationError: If any check fails.
    """
    validation_errors = {}

    if settings.environment == Environment.PRODUCTION:
        localhost_only = all(
            "localhost" in origin or "127.0.0.1" in origin
            for origin in settings.cors_origins
        )
        if localhost_only:
            validation_errors["cors_origins"] = (
                "Production environment requires non-localhost CORS origins. "
                "Configure your production frontend domain(s)."
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
