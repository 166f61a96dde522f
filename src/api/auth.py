"""Bearer credential check for the feed endpoint.

Identity is owned by an external auth service; the feed only needs a
yes/no answer for the presented token.
"""

import hmac
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import structlog


logger = structlog.get_logger()

BEARER_PREFIX = "bearer "


@runtime_checkable
class TokenVerifier(Protocol):
    """Protocol for the external credential verifier."""

    def verify(self, token: str) -> bool:
        """Return True if ``token`` identifies an authorized caller."""
        ...


class StaticTokenVerifier:
    """Verifier backed by a fixed token set.

    With no tokens configured every non-empty bearer token is accepted.
    ``AppSettings`` refuses an empty token set in production.
    """

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        """Initialize the verifier.

        Args:
            tokens: Accepted tokens.
        """
        self._tokens = tuple(token for token in tokens if token)

    @property
    def open_mode(self) -> bool:
        """Check whether any non-empty token is accepted."""
        return not self._tokens

    def verify(self, token: str) -> bool:
        """Compare ``token`` against the configured set in constant time."""
        if not token:
            return False
        if self.open_mode:
            return True
        return any(
            hmac.compare_digest(token.encode(), known.encode())
            for known in self._tokens
        )


def extract_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Args:
        authorization: Raw header value.

    Returns:
        The token, or None if the header is missing or not a bearer.
    """
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX) :].strip()
    return token or None
