"""Unit tests for fetcher configuration and environment settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from fetcher.config import FetcherConfig
from fetcher.constants import DEFAULT_ACCEPT_LANGUAGE, DEFAULT_USER_AGENT
from fetcher.models import RetryPolicy
from fetcher.settings import FetcherSettings, get_settings


class TestFetcherConfig:
    """Tests for FetcherConfig model."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = FetcherConfig()

        assert config.magic_vars is False
        assert config.timeout == 30.0
        assert config.max_connections == 10
        assert config.verify_tls is False
        assert config.user_agent == DEFAULT_USER_AGENT
        assert "Chrome/80" in config.user_agent
        assert config.accept_language == DEFAULT_ACCEPT_LANGUAGE
        assert config.strict_decoding is False
        assert config.retry_policy == RetryPolicy()

    def test_frozen(self) -> None:
        """Test that configuration is immutable."""
        config = FetcherConfig()

        with pytest.raises(ValidationError):
            config.timeout = 5.0  # type: ignore[misc]

    def test_rejects_unknown_fields(self) -> None:
        """Test that typos are caught."""
        with pytest.raises(ValidationError):
            FetcherConfig(timeot=5.0)  # type: ignore[call-arg]

    @pytest.mark.parametrize("timeout", [0, -1, 601])
    def test_timeout_bounds(self, timeout: float) -> None:
        """Test timeout validation."""
        with pytest.raises(ValidationError):
            FetcherConfig(timeout=timeout)


class TestFetcherSettings:
    """Tests for environment-driven settings."""

    @pytest.fixture(autouse=True)
    def isolated_env(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Run each test away from any local .env file."""
        monkeypatch.chdir(tmp_path)
        for name in (
            "FETCHER_MAGIC_VARS",
            "FETCHER_TIMEOUT",
            "FETCHER_STRICT_DECODING",
            "FETCHER_VERIFY_TLS",
            "FETCHER_LOG_LEVEL",
            "FETCHER_LOG_JSON",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self) -> None:
        """Test settings without environment overrides."""
        settings = get_settings()

        assert settings.magic_vars is False
        assert settings.timeout == 30.0
        assert settings.log_level == "INFO"
        assert settings.log_json is True

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that FETCHER_ variables are picked up."""
        monkeypatch.setenv("FETCHER_MAGIC_VARS", "true")
        monkeypatch.setenv("FETCHER_TIMEOUT", "12.5")
        monkeypatch.setenv("FETCHER_LOG_LEVEL", "DEBUG")

        settings = FetcherSettings()

        assert settings.magic_vars is True
        assert settings.timeout == 12.5
        assert settings.log_level == "DEBUG"

    def test_to_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test conversion into a FetcherConfig."""
        monkeypatch.setenv("FETCHER_STRICT_DECODING", "1")
        monkeypatch.setenv("FETCHER_VERIFY_TLS", "yes")

        config = FetcherSettings().to_config()

        assert config.strict_decoding is True
        assert config.verify_tls is True
        assert config.timeout == 30.0
