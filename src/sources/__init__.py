"""Source adapters: one per upstream source."""

from src.sources.base import (
    BaseSourceAdapter,
    SourceAdapter,
    SourceOutcome,
    StaticEntry,
)
from src.sources.errors import EnvelopeError, ErrorRecord, SourceError, SourceErrorClass
from src.sources.reddit import RedditSourceAdapter
from src.sources.registry import build_default_adapters, retry_policy_from_settings
from src.sources.state_machine import SourceState, SourceStateMachine
from src.sources.static import StaticSourceAdapter, simulated_twitter_adapter


__all__ = [
    "BaseSourceAdapter",
    "EnvelopeError",
    "ErrorRecord",
    "RedditSourceAdapter",
    "SourceAdapter",
    "SourceError",
    "SourceErrorClass",
    "SourceOutcome",
    "SourceState",
    "SourceStateMachine",
    "StaticEntry",
    "StaticSourceAdapter",
    "build_default_adapters",
    "retry_policy_from_settings",
    "simulated_twitter_adapter",
]
