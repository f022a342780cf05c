"""
Configuration management for converge-wait.

This module handles environment variables, settings validation, and the
immutable per-call wait configuration, using Pydantic Settings for type
safety and validation.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import HardInputError

# a "retry interval" is always waited before the first attempt, so keep it short
DEFAULT_RETRY_INTERVAL = 0.1
DEFAULT_TIMEOUT = 120.0
CLUSTER_CONDITION_TIMEOUT = 180.0


class WaitConfiguration(BaseModel):
    """Retry interval and timeout (in seconds) for a single wait."""

    model_config = ConfigDict(frozen=True)

    retry_interval: float = Field(
        default=DEFAULT_RETRY_INTERVAL,
        description="Delay between two attempts",
        allow_inf_nan=False,
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        description="Overall deadline for the wait",
        allow_inf_nan=False,
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise HardInputError(
                f"Invalid wait configuration: {e}", context={"input": data}
            ) from e

    @model_validator(mode="after")
    def validate_durations(self) -> "WaitConfiguration":
        """Validate that both durations are positive and consistent."""
        if self.retry_interval <= 0:
            raise ValueError(f"retry_interval must be > 0, got {self.retry_interval}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.retry_interval > self.timeout:
            raise ValueError(
                f"retry_interval ({self.retry_interval}) must not exceed "
                f"timeout ({self.timeout})"
            )
        return self

    def with_options(self, *options: "RetryOption") -> "WaitConfiguration":
        """Return a new configuration with the given options applied."""
        result = self
        for option in options:
            result = option.apply(result)
        return result


class RetryOption(ABC):
    """Some configuration that overrides a field of a WaitConfiguration."""

    @abstractmethod
    def apply(self, config: WaitConfiguration) -> WaitConfiguration:
        """Return a new configuration with this option applied."""


class RetryInterval(RetryOption):
    """Option to override the retry interval."""

    def __init__(self, seconds: float):
        self.seconds = seconds

    def apply(self, config: WaitConfiguration) -> WaitConfiguration:
        return WaitConfiguration(retry_interval=self.seconds, timeout=config.timeout)

    def __repr__(self) -> str:
        return f"RetryInterval({self.seconds})"


class Timeout(RetryOption):
    """Option to override the timeout."""

    def __init__(self, seconds: float):
        self.seconds = seconds

    def apply(self, config: WaitConfiguration) -> WaitConfiguration:
        return WaitConfiguration(
            retry_interval=config.retry_interval, timeout=self.seconds
        )

    def __repr__(self) -> str:
        return f"Timeout({self.seconds})"


class Settings(BaseSettings):
    """Main library settings."""

    model_config = SettingsConfigDict(
        env_prefix="CONVERGE_WAIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Retry configuration
    retry_interval: float = Field(
        default=DEFAULT_RETRY_INTERVAL,
        description="Default retry interval (seconds)",
        allow_inf_nan=False,
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        description="Default wait timeout (seconds)",
        allow_inf_nan=False,
    )
    cluster_condition_timeout: float = Field(
        default=CLUSTER_CONDITION_TIMEOUT,
        description="Timeout when waiting for a cluster registration condition",
        allow_inf_nan=False,
    )
    deployment_timeout_multiplier: int = Field(
        default=6, description="Timeout multiplier for deployment readiness"
    )

    # Remote endpoints
    metrics_url: str = Field(default="", description="Metrics endpoint URL")
    bearer_token: str = Field(
        default="", description="Bearer token for metrics and routes"
    )
    http_probe_timeout: float = Field(
        default=5.0,
        description="Client-side timeout of a single HTTP probe",
        allow_inf_nan=False,
    )

    # Baselines
    strict_baselines: bool = Field(
        default=True,
        description="Fail fast when a delta wait references an uncaptured baseline",
    )

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}")
        return v

    @model_validator(mode="after")
    def validate_retry_settings(self) -> "Settings":
        """Validate the default wait configuration and derived timeouts."""
        WaitConfiguration(retry_interval=self.retry_interval, timeout=self.timeout)
        if self.deployment_timeout_multiplier < 1:
            raise ValueError(
                "deployment_timeout_multiplier must be >= 1, "
                f"got {self.deployment_timeout_multiplier}"
            )
        if self.cluster_condition_timeout <= 0:
            raise ValueError(
                "cluster_condition_timeout must be > 0, "
                f"got {self.cluster_condition_timeout}"
            )
        if self.http_probe_timeout <= 0:
            raise ValueError(
                f"http_probe_timeout must be > 0, got {self.http_probe_timeout}"
            )
        return self

    @property
    def wait_config(self) -> WaitConfiguration:
        """Get the default wait configuration."""
        return WaitConfiguration(
            retry_interval=self.retry_interval, timeout=self.timeout
        )


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
