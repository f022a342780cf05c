"""
Tests for settings, wait configuration and retry options.
"""

import math
import os
from unittest.mock import patch

import pytest
import structlog
from pydantic import ValidationError

import converge_wait.config
from converge_wait.config import (
    RetryOption,
    RetryInterval,
    Settings,
    Timeout,
    WaitConfiguration,
    get_settings,
)
from converge_wait.exceptions import HardInputError
from converge_wait.logging_config import setup_logging


class TestWaitConfiguration:
    """Test the immutable wait configuration."""

    def test_defaults(self):
        """Test the default cadence and deadline."""
        config = WaitConfiguration()
        assert config.retry_interval == 0.1
        assert config.timeout == 120.0

    @pytest.mark.parametrize(
        "retry_interval,timeout",
        [(0, 1.0), (-1, 1.0), (0.1, 0), (0.1, -5), (2.0, 1.0)],
    )
    def test_invalid_configuration(self, retry_interval, timeout):
        """Test that invalid durations are rejected as hard input errors."""
        with pytest.raises(HardInputError):
            WaitConfiguration(retry_interval=retry_interval, timeout=timeout)

    @pytest.mark.parametrize(
        "retry_interval,timeout",
        [
            (math.nan, 1.0),
            (0.1, math.nan),
            (math.inf, math.inf),
            (0.1, math.inf),
            (-math.inf, 1.0),
        ],
    )
    def test_non_finite_durations_are_rejected(self, retry_interval, timeout):
        """Test that NaN and infinite durations never make it into a wait."""
        with pytest.raises(HardInputError):
            WaitConfiguration(retry_interval=retry_interval, timeout=timeout)

    def test_non_finite_option_is_rejected(self):
        with pytest.raises(HardInputError):
            WaitConfiguration().with_options(Timeout(math.nan))

    def test_interval_equal_to_timeout_is_valid(self):
        config = WaitConfiguration(retry_interval=1.0, timeout=1.0)
        assert config.retry_interval == config.timeout

    def test_frozen(self):
        """Test that a configuration cannot be mutated in place."""
        config = WaitConfiguration()
        with pytest.raises(ValidationError):
            config.timeout = 5.0  # type: ignore[misc]

    def test_with_options_returns_new_instance(self):
        """Test that options never mutate the original configuration."""
        base = WaitConfiguration(retry_interval=0.1, timeout=10.0)

        derived = base.with_options(RetryInterval(0.5), Timeout(30.0))

        assert derived.retry_interval == 0.5
        assert derived.timeout == 30.0
        assert base.retry_interval == 0.1
        assert base.timeout == 10.0

    def test_with_no_options(self):
        base = WaitConfiguration()
        assert base.with_options() == base

    def test_options_applied_in_order(self):
        """Test that later options override earlier ones."""
        config = WaitConfiguration().with_options(Timeout(5.0), Timeout(7.0))
        assert config.timeout == 7.0

    def test_option_producing_invalid_configuration(self):
        """Test that an option cannot produce an interval above the timeout."""
        with pytest.raises(HardInputError):
            WaitConfiguration(retry_interval=1.0, timeout=10.0).with_options(
                Timeout(0.5)
            )

    def test_retry_option_is_abstract(self):
        with pytest.raises(TypeError):
            RetryOption()  # type: ignore[abstract]

    def test_option_repr(self):
        assert repr(RetryInterval(0.5)) == "RetryInterval(0.5)"
        assert repr(Timeout(3)) == "Timeout(3)"


class TestSettings:
    """Test environment driven settings."""

    def test_defaults(self):
        """Test the default settings."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
        assert settings.retry_interval == 0.1
        assert settings.timeout == 120.0
        assert settings.cluster_condition_timeout == 180.0
        assert settings.deployment_timeout_multiplier == 6
        assert settings.http_probe_timeout == 5.0
        assert settings.strict_baselines is True
        assert settings.log_level == "INFO"

    def test_from_environment(self):
        """Test settings read from prefixed environment variables."""
        with patch.dict(
            os.environ,
            {
                "CONVERGE_WAIT_RETRY_INTERVAL": "0.5",
                "CONVERGE_WAIT_TIMEOUT": "30",
                "CONVERGE_WAIT_METRICS_URL": "https://metrics.example.com/metrics",
                "CONVERGE_WAIT_STRICT_BASELINES": "false",
                "CONVERGE_WAIT_LOG_LEVEL": "debug",
            },
            clear=True,
        ):
            settings = Settings()

        assert settings.wait_config == WaitConfiguration(
            retry_interval=0.5, timeout=30.0
        )
        assert settings.metrics_url == "https://metrics.example.com/metrics"
        assert settings.strict_baselines is False
        assert settings.log_level == "DEBUG"

    def test_invalid_wait_settings(self):
        """Test that inconsistent retry settings are rejected."""
        with pytest.raises(ValueError):
            Settings(retry_interval=10.0, timeout=1.0)

    @pytest.mark.parametrize(
        "env",
        [
            {"CONVERGE_WAIT_TIMEOUT": "nan"},
            {"CONVERGE_WAIT_RETRY_INTERVAL": "nan"},
            {"CONVERGE_WAIT_TIMEOUT": "inf"},
            {"CONVERGE_WAIT_CLUSTER_CONDITION_TIMEOUT": "nan"},
            {"CONVERGE_WAIT_HTTP_PROBE_TIMEOUT": "inf"},
        ],
    )
    def test_non_finite_durations_from_environment(self, env):
        """Test that non-finite durations in the environment are rejected."""
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ValueError):
                Settings()

    def test_invalid_multiplier(self):
        with pytest.raises(ValueError):
            Settings(deployment_timeout_multiplier=0)

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            Settings(log_level="verbose")

    def test_invalid_log_format(self):
        with pytest.raises(ValueError, match="Invalid log format"):
            Settings(log_format="xml")

    def test_get_settings_is_cached(self):
        """Test that the global settings instance is created once."""
        converge_wait.config._settings_instance = None
        try:
            with patch.dict(os.environ, {"CONVERGE_WAIT_TIMEOUT": "42"}, clear=True):
                first = get_settings()
            assert first.timeout == 42.0
            assert get_settings() is first
        finally:
            converge_wait.config._settings_instance = None


class TestLogging:
    """Test structlog setup."""

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_setup_logging(self, log_format):
        """Test that logging can be configured in both formats."""
        try:
            setup_logging(Settings(log_format=log_format, log_level="DEBUG"))
            logger = structlog.get_logger("converge_wait.test")
            logger.info("configured", log_format=log_format)
        finally:
            structlog.reset_defaults()
