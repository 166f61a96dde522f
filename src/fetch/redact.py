"""Header and URL redaction utilities for logging."""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


# Headers that must never appear in logs
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "x-api-key",
        "x-auth-token",
        "proxy-authorization",
        "set-cookie",
    }
)

# Query parameters that carry credentials
SENSITIVE_QUERY_PARAMS = frozenset(
    {"access_token", "token", "api_key", "apikey", "key", "secret"}
)

REDACTED_VALUE = "[REDACTED]"


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers for logging.

    Args:
        headers: Original headers dictionary.

    Returns:
        New dictionary with sensitive values replaced by [REDACTED].
    """
    return {
        key: REDACTED_VALUE if is_sensitive_header(key) else value
        for key, value in headers.items()
    }


def is_sensitive_header(header_name: str) -> bool:
    """Check if a header name is sensitive."""
    return header_name.lower() in SENSITIVE_HEADERS


def redact_url_credentials(url: str) -> str:
    """Redact credentials from a URL.

    Handles user:password@host userinfo and credential-bearing query
    parameters such as ``?access_token=...``.

    Args:
        url: URL that may contain credentials.

    Returns:
        URL with credentials redacted.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        # Unparseable URLs are logged without any detail
        return REDACTED_VALUE

    userinfo, at, hostport = parts.netloc.rpartition("@")
    if at:
        masked = f"{REDACTED_VALUE}:{REDACTED_VALUE}" if ":" in userinfo else REDACTED_VALUE
        parts = parts._replace(netloc=f"{masked}@{hostport}")

    pairs = parse_qsl(parts.query, keep_blank_values=True)
    if any(key.lower() in SENSITIVE_QUERY_PARAMS for key, _ in pairs):
        query = [
            (key, REDACTED_VALUE if key.lower() in SENSITIVE_QUERY_PARAMS else value)
            for key, value in pairs
        ]
        parts = parts._replace(query=urlencode(query, safe="[]:/"))

    return urlunsplit(parts)
