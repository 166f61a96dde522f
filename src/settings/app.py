"""Application settings powered by Pydantic BaseSettings."""

import logging
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_USER_AGENT = "feed-aggregator/1.0 (community feed; +https://github.com)"
DEFAULT_RELAY_URL_TEMPLATE = "https://api.allorigins.win/get?url={url}"


class AppSettings(BaseSettings):
    """Centralized environment configuration.

    Every option is read from a ``FEED_``-prefixed environment variable
    (or ``.env``), e.g. ``FEED_CACHE_TTL_SECONDS=120``.
    """

    model_config = SettingsConfigDict(
        env_prefix="FEED_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache
    cache_ttl_seconds: Annotated[float, Field(gt=0, le=86400)] = 300.0

    # Upstream fetch
    request_timeout_seconds: Annotated[float, Field(gt=0, le=120)] = 10.0
    retry_attempts: Annotated[int, Field(ge=1, le=10)] = 2
    retry_base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 500
    retry_max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 8000
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )

    # Reddit source
    subreddit: Annotated[str, Field(min_length=1, pattern=r"^[A-Za-z0-9_]+$")] = (
        "developersIndia"
    )
    reddit_listings: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["best", "hot", "new"], min_length=1
    )
    reddit_limit: Annotated[int, Field(ge=1, le=100)] = 20
    relay_url_template: str = DEFAULT_RELAY_URL_TEMPLATE

    # Aggregation
    aggregation_deadline_seconds: Annotated[float, Field(gt=0, le=600)] = 30.0
    max_workers: Annotated[int, Field(ge=1, le=64)] = 8
    single_flight: bool = True

    # HTTP surface
    api_tokens: Annotated[list[str], NoDecode] = Field(default_factory=list)
    client_url: str | None = None
    environment: Literal["development", "production", "test"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True

    @field_validator("reddit_listings", "api_tokens", mode="before")
    @classmethod
    def split_comma_separated(cls, v: Any) -> Any:
        """Accept comma-separated strings for list options."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("relay_url_template")
    @classmethod
    def validate_relay_template(cls, v: str) -> str:
        """Ensure the relay template has a slot for the upstream URL."""
        if "{url}" not in v:
            msg = "relay_url_template must contain a '{url}' placeholder"
            raise ValueError(msg)
        if not v.startswith(("http://", "https://")):
            msg = "relay_url_template must be an absolute http(s) URL"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def require_tokens_in_production(self) -> "AppSettings":
        """Refuse production without at least one API token."""
        if self.environment == "production" and not self.api_tokens:
            msg = "FEED_API_TOKENS must be set when FEED_ENVIRONMENT is production"
            raise ValueError(msg)
        return self

    @property
    def log_level_value(self) -> int:
        """Return the numeric logging level."""
        return logging.getLevelNamesMapping()[self.log_level]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def redacted(self) -> dict[str, Any]:
        """Return settings as a dict with secrets masked."""
        data = self.model_dump()
        data["api_tokens"] = ["[REDACTED]" for _ in self.api_tokens]
        return data


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
