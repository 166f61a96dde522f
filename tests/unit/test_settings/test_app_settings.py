"""Unit tests for environment settings."""

import logging

import pytest
from pydantic import ValidationError

from src.settings.app import DEFAULT_RELAY_URL_TEMPLATE, AppSettings
from src.settings.error_hints import (
    env_var_for,
    format_settings_errors,
    get_error_hint,
)


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self) -> None:
        """Test default values."""
        settings = AppSettings(_env_file=None)

        assert settings.cache_ttl_seconds == 300.0
        assert settings.retry_attempts == 2
        assert settings.subreddit == "developersIndia"
        assert settings.reddit_listings == ["best", "hot", "new"]
        assert settings.relay_url_template == DEFAULT_RELAY_URL_TEMPLATE
        assert settings.aggregation_deadline_seconds == 30.0
        assert settings.single_flight is True
        assert settings.api_tokens == []
        assert settings.is_production is False

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test FEED_-prefixed variables and comma-separated lists."""
        monkeypatch.setenv("FEED_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("FEED_REDDIT_LISTINGS", "hot, new")
        monkeypatch.setenv("FEED_API_TOKENS", "alpha,beta")
        monkeypatch.setenv("FEED_SINGLE_FLIGHT", "false")
        monkeypatch.setenv("FEED_ENVIRONMENT", "production")

        settings = AppSettings(_env_file=None)

        assert settings.cache_ttl_seconds == 60.0
        assert settings.reddit_listings == ["hot", "new"]
        assert settings.api_tokens == ["alpha", "beta"]
        assert settings.single_flight is False
        assert settings.is_production is True

    @pytest.mark.parametrize(
        "template",
        ["https://relay.example/get", "relay.example/get?url={url}"],
    )
    def test_rejects_bad_relay_template(self, template: str) -> None:
        """Test that the relay template must be absolute with a {url} slot."""
        with pytest.raises(ValidationError):
            AppSettings(_env_file=None, relay_url_template=template)

    def test_rejects_non_positive_ttl(self) -> None:
        """Test that the cache TTL must be positive."""
        with pytest.raises(ValidationError):
            AppSettings(_env_file=None, cache_ttl_seconds=0)

    def test_production_requires_tokens(self) -> None:
        """Test that production settings refuse an empty token set."""
        with pytest.raises(ValidationError) as exc_info:
            AppSettings(_env_file=None, environment="production")

        [line] = format_settings_errors(exc_info.value)
        assert "FEED_API_TOKENS must be set" in line

    def test_open_mode_allowed_outside_production(self) -> None:
        """Test that development and test settings may omit tokens."""
        for environment in ("development", "test"):
            settings = AppSettings(_env_file=None, environment=environment)

            assert settings.api_tokens == []

    def test_log_level_value(self) -> None:
        """Test the numeric logging level."""
        settings = AppSettings(_env_file=None, log_level="WARNING")

        assert settings.log_level_value == logging.WARNING

    def test_redacted_masks_tokens(self) -> None:
        """Test that redacted output never contains token values."""
        settings = AppSettings(_env_file=None, api_tokens=["s3cret"])

        data = settings.redacted()

        assert data["api_tokens"] == ["[REDACTED]"]
        assert "s3cret" not in str(data)


class TestErrorHints:
    """Tests for settings validation hints."""

    def test_env_var_for(self) -> None:
        """Test the variable name for a field."""
        assert env_var_for("cache_ttl_seconds") == "FEED_CACHE_TTL_SECONDS"

    def test_field_hint_preferred(self) -> None:
        """Test that field-specific hints win over type hints."""
        assert "listing" in get_error_hint("too_short", "reddit_listings")

    def test_unknown_error_type(self) -> None:
        """Test the generic hint."""
        assert get_error_hint("something_new") == "Check the documented default values."

    def test_format_settings_errors(self) -> None:
        """Test that each invalid setting names its variable."""
        with pytest.raises(ValidationError) as exc_info:
            AppSettings(_env_file=None, retry_attempts=0, subreddit="r/bad name")

        lines = format_settings_errors(exc_info.value)

        assert len(lines) == 2
        assert any(line.startswith("FEED_RETRY_ATTEMPTS:") for line in lines)
        assert any(line.startswith("FEED_SUBREDDIT:") for line in lines)
        assert all("Hint:" in line for line in lines)
