"""
Application configuration using Pydantic Settings.

Values come from environment variables (or a ``.env`` file). The Atlas
project and API key are the only settings without a usable default; the
broker starts without them but reports not ready until they are set.
"""
import re
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Atlas project IDs are 24 character hex object IDs.
GROUP_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


class Settings(BaseSettings):
    """Broker settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Atlas Service Broker", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="development/testing/staging/production")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server
    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=4000, ge=1, le=65535, description="Listen port")
    reload: bool = Field(default=False, description="Auto-reload on code changes")

    # Atlas project and programmatic API key
    atlas_base_url: str = Field(
        default="https://cloud.mongodb.com", description="Atlas base URL, used for the API and dashboard links"
    )
    atlas_group_id: str = Field(default="", description="Atlas project (group) ID")
    atlas_public_key: str = Field(default="", description="Programmatic API public key")
    atlas_private_key: SecretStr = Field(default=SecretStr(""), description="Programmatic API private key")

    # Atlas requests
    atlas_timeout_seconds: float = Field(default=30.0, gt=0, le=300, description="Request timeout in seconds")
    atlas_max_retries: int = Field(default=3, ge=0, le=10, description="Retries for idempotent reads")
    atlas_page_size: int = Field(
        default=500, ge=1, le=500, description="Clusters fetched per list request (Atlas maximum is 500)"
    )

    # Sentry
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")
    sentry_traces_sample_rate: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Sentry traces sample rate"
    )

    # Monitoring
    prometheus_enabled: bool = Field(default=True, description="Expose Prometheus metrics at /metrics")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = ["development", "testing", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v.lower()

    @field_validator("atlas_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("atlas_group_id")
    @classmethod
    def validate_group_id(cls, v: str) -> str:
        """Reject values that cannot be an Atlas project ID; empty means unset."""
        v = v.strip().lower()
        if v and not GROUP_ID_PATTERN.match(v):
            raise ValueError("Atlas group ID must be a 24 character hex string")
        return v

    @property
    def atlas_configured(self) -> bool:
        """True when a project and a complete API key are set."""
        return bool(
            self.atlas_group_id
            and self.atlas_public_key
            and self.atlas_private_key.get_secret_value()
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# Global settings instance
settings = Settings()
