"""Hints for invalid environment settings.

Turns pydantic validation errors on ``AppSettings`` into messages that
name the environment variable to fix.
"""

from typing import Any, Final

from pydantic import ValidationError


ENV_PREFIX: Final[str] = "FEED_"

ERROR_HINTS: Final[dict[str, str]] = {
    "int_parsing": "This setting must be an integer (whole number).",
    "float_parsing": "This setting must be a number.",
    "bool_parsing": "This setting must be true or false.",
    "greater_than": "The value is too small. It must be positive.",
    "greater_than_equal": "The value is too small. Check the minimum allowed.",
    "less_than_equal": "The value is too large. Check the maximum allowed.",
    "string_too_short": "The value must not be empty.",
    "string_too_long": "The value is too long.",
    "string_pattern_mismatch": "Use letters, numbers, or underscores only.",
    "literal_error": "Use one of the allowed values listed in the message.",
    "too_short": "Provide at least one comma-separated value.",
    "value_error": "Check the value format.",
}

FIELD_HINTS: Final[dict[str, str]] = {
    "cache_ttl_seconds": "Seconds a feed stays fresh (default 300).",
    "request_timeout_seconds": "Per-request upstream timeout in seconds (default 10).",
    "retry_attempts": "Attempts per endpoint, 1-10 (default 2).",
    "subreddit": "Subreddit name without 'r/' (e.g. 'developersIndia').",
    "reddit_listings": "Comma-separated listing views (e.g. 'best,hot,new').",
    "relay_url_template": "Absolute URL containing '{url}'.",
    "aggregation_deadline_seconds": "Ceiling on one aggregation in seconds.",
}


def env_var_for(field_name: str) -> str:
    """Get the environment variable that sets ``field_name``."""
    return f"{ENV_PREFIX}{field_name.upper()}"


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a user-friendly hint for a validation error.

    Args:
        error_type: The Pydantic error type (e.g., 'int_parsing').
        field_name: Optional settings field name.

    Returns:
        A user-friendly hint string.
    """
    if field_name and field_name in FIELD_HINTS:
        return FIELD_HINTS[field_name]
    return ERROR_HINTS.get(error_type, "Check the documented default values.")


def format_settings_errors(error: ValidationError) -> list[str]:
    """Format every error of a settings validation failure.

    Args:
        error: Validation error raised by AppSettings.

    Returns:
        One formatted line (with hint) per invalid setting.
    """
    lines: list[str] = []
    for detail in error.errors():
        loc: tuple[Any, ...] = detail.get("loc", ())
        field_name = str(loc[0]) if loc else None
        location = env_var_for(field_name) if field_name else "settings"
        hint = get_error_hint(detail.get("type", "unknown"), field_name)
        lines.append(f"{location}: {detail.get('msg')}\n    Hint: {hint}")
    return lines
