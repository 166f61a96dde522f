"""HTTP API for the feed service."""

from src.api.app import create_app, create_default_app
from src.api.auth import StaticTokenVerifier, TokenVerifier, extract_bearer_token


__all__ = [
    "StaticTokenVerifier",
    "TokenVerifier",
    "create_app",
    "create_default_app",
    "extract_bearer_token",
]
