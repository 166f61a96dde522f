"""Reddit listing adapter.

Fetches a subreddit's posts from Reddit's public JSON listings. Reddit
rate-limits and blocks anonymous clients often enough that a single
request is not a usable strategy, so every fetch walks a ladder:

1. Each listing view (best, hot, new, ...) gets ``max_attempts`` tries
   with exponential backoff between tries.
2. If every view is exhausted, the primary listing is requested once
   more through a content relay that wraps the payload in an envelope.
3. If the relay fails too, hard-coded placeholder posts are returned.

``fetch`` always returns a non-empty success outcome.
"""

import json
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import structlog
from pydantic import ValidationError

from src.feed.models import FeedItem, ItemOrigin
from src.fetch.client import HttpFetcher
from src.fetch.models import PayloadValidationError
from src.fetch.redact import redact_url_credentials
from src.fetch.retry import RetryPolicy, run_with_retry
from src.sources.base import BaseSourceAdapter, Clock, SourceOutcome, utc_now
from src.sources.constants import (
    DEFAULT_REDDIT_LIMIT,
    DEFAULT_REDDIT_LISTINGS,
    FALLBACK_SUFFIX,
    REDDIT_BASE_URL,
    REDDIT_FALLBACK_POSTS,
    REDDIT_ID_PREFIX,
    REDDIT_LISTING_URL_TEMPLATE,
    REDDIT_POST_BASE_URL,
    REDDIT_SOURCE_ID,
    REDDIT_SOURCE_NAME,
    RELAY_CONTENTS_KEY,
)
from src.sources.errors import EnvelopeError
from src.sources.state_machine import SourceStateMachine


logger = structlog.get_logger()


def build_listing_url(
    subreddit: str,
    listing: str,
    limit: int = DEFAULT_REDDIT_LIMIT,
    base_url: str = REDDIT_BASE_URL,
) -> str:
    """Build the JSON listing URL for a subreddit view.

    Args:
        subreddit: Subreddit name without the ``r/`` prefix.
        listing: Listing view, e.g. "best" or "hot".
        limit: Maximum number of posts requested.
        base_url: Reddit origin.

    Returns:
        Absolute listing URL.
    """
    return REDDIT_LISTING_URL_TEMPLATE.format(
        base=base_url.rstrip("/"),
        subreddit=subreddit,
        listing=listing,
        limit=limit,
    )


def build_relay_url(template: str, target_url: str) -> str:
    """Build a relay URL that re-requests ``target_url`` indirectly."""
    return template.format(url=quote(target_url, safe=""))


def unwrap_relay_envelope(body: Any) -> Any:
    """Extract the upstream payload from a relay envelope.

    The relay answers ``{"contents": "<upstream body as string>",
    "status": {"http_code": 200, ...}}``.

    Args:
        body: Decoded relay response.

    Returns:
        Decoded upstream payload.

    Raises:
        EnvelopeError: If the envelope is missing, reports an upstream
            error, or wraps something that is not JSON.
    """
    if not isinstance(body, dict):
        msg = "Relay response is not a JSON object"
        raise EnvelopeError(msg)

    status = body.get("status")
    if isinstance(status, dict):
        http_code = status.get("http_code")
        if isinstance(http_code, int) and not 200 <= http_code < 300:  # noqa: PLR2004
            msg = f"Relay reports upstream status {http_code}"
            raise EnvelopeError(msg)

    contents = body.get(RELAY_CONTENTS_KEY)
    if isinstance(contents, (dict, list)):
        return contents
    if not isinstance(contents, str) or not contents.strip():
        msg = f"Relay envelope has no '{RELAY_CONTENTS_KEY}'"
        raise EnvelopeError(msg)

    try:
        return json.loads(contents)
    except json.JSONDecodeError as e:
        msg = f"Relay contents are not JSON: {e}"
        raise EnvelopeError(msg) from e


def _parse_created_utc(value: Any, default: datetime) -> datetime:
    """Convert Reddit's epoch seconds into an aware datetime."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, UTC)
        except (OverflowError, OSError, ValueError):
            return default
    return default


class RedditSourceAdapter(BaseSourceAdapter):
    """Network adapter for one subreddit.

    Owns the endpoint list, retry policy, relay template and fallback
    posts for the source. Item ids are ``reddit_<post id>``.
    """

    def __init__(  # noqa: PLR0913
        self,
        http_client: HttpFetcher,
        subreddit: str = "developersIndia",
        listings: Sequence[str] = DEFAULT_REDDIT_LISTINGS,
        limit: int = DEFAULT_REDDIT_LIMIT,
        retry_policy: RetryPolicy | None = None,
        relay_url_template: str | None = None,
        timeout_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Clock = utc_now,
        source_id: str = REDDIT_SOURCE_ID,
        base_url: str = REDDIT_BASE_URL,
    ) -> None:
        """Initialize the Reddit adapter.

        Args:
            http_client: Shared HTTP fetcher.
            subreddit: Subreddit name.
            listings: Listing views tried in order.
            limit: Posts requested per listing.
            retry_policy: Attempts and backoff per listing.
            relay_url_template: Relay URL with a ``{url}`` slot, or None
                to skip the relay step.
            timeout_seconds: Per-request timeout override.
            sleep: Blocking sleep used for backoff.
            clock: Time source.
            source_id: Identifier of this source.
            base_url: Reddit origin (overridable for tests).
        """
        super().__init__(source_id, clock)
        if not listings:
            msg = "At least one listing is required"
            raise ValueError(msg)
        self._http = http_client
        self._subreddit = subreddit
        self._listings = tuple(listings)
        self._limit = limit
        self._policy = retry_policy or RetryPolicy()
        self._relay_url_template = relay_url_template
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._base_url = base_url
        self._log = logger.bind(
            component="source",
            source_id=source_id,
            subreddit=subreddit,
        )

    @property
    def endpoints(self) -> list[str]:
        """Candidate listing URLs in the order they are tried."""
        return [
            build_listing_url(self._subreddit, listing, self._limit, self._base_url)
            for listing in self._listings
        ]

    @property
    def relay_url(self) -> str | None:
        """Relay URL for the primary listing, if a relay is configured."""
        if not self._relay_url_template:
            return None
        return build_relay_url(self._relay_url_template, self.endpoints[0])

    @property
    def fallback_source(self) -> str:
        """Source tag carried by placeholder items."""
        return f"{REDDIT_SOURCE_NAME}{FALLBACK_SUFFIX}"

    def fetch(self) -> SourceOutcome:
        """Fetch posts, falling back through endpoints, relay, and placeholders.

        Returns:
            Successful SourceOutcome with live, relayed or fallback items.
        """
        try:
            return self._fetch_ladder()
        except Exception:  # noqa: BLE001
            self._log.exception("source_crashed")
            return SourceOutcome.success(
                self.source_id,
                self.fallback_items(self._clock()),
                ItemOrigin.FALLBACK,
            )

    def _fetch_ladder(self) -> SourceOutcome:
        """Walk endpoints, then relay, then fallback."""
        sm = SourceStateMachine(self.source_id)
        sm.to_fetching()
        total_attempts = 0

        for endpoint in self.endpoints:
            log = self._log.bind(endpoint=redact_url_credentials(endpoint))
            outcome = run_with_retry(
                lambda url=endpoint: self._http.get_json(
                    url, source_id=self.source_id, timeout=self._timeout_seconds
                ),
                lambda result: self.parse_listing(result.body),
                self._policy,
                sleep=self._sleep,
                log=log,
            )
            total_attempts += outcome.attempts

            if outcome.succeeded and outcome.value:
                sm.to_done()
                log.info(
                    "source_fetched",
                    origin=ItemOrigin.LIVE.value,
                    items=len(outcome.value),
                    attempts=total_attempts,
                )
                return SourceOutcome.success(
                    self.source_id, outcome.value, ItemOrigin.LIVE, total_attempts
                )

            log.warning(
                "endpoint_exhausted",
                attempts=outcome.attempts,
                error_class=(
                    outcome.last_error.error_class.value
                    if outcome.last_error
                    else None
                ),
            )

        relay_url = self.relay_url
        if relay_url:
            sm.to_proxying()
            total_attempts += 1
            items = self._fetch_via_relay(relay_url)
            if items:
                sm.to_done()
                self._log.info(
                    "source_fetched",
                    origin=ItemOrigin.PROXY.value,
                    items=len(items),
                    attempts=total_attempts,
                )
                return SourceOutcome.success(
                    self.source_id, items, ItemOrigin.PROXY, total_attempts
                )

        sm.to_fallback()
        fallback = self.fallback_items(self._clock())
        self._log.warning(
            "source_fallback",
            attempts=total_attempts,
            items=len(fallback),
        )
        return SourceOutcome.success(
            self.source_id, fallback, ItemOrigin.FALLBACK, total_attempts
        )

    def _fetch_via_relay(self, relay_url: str) -> list[FeedItem]:
        """Request the primary listing once through the relay.

        Args:
            relay_url: Relay URL wrapping the primary listing.

        Returns:
            Parsed items, or an empty list if the relay path failed.
        """
        log = self._log.bind(relay_url=redact_url_credentials(relay_url))
        log.info("proxy_attempt")

        result = self._http.get_json(
            relay_url, source_id=self.source_id, timeout=self._timeout_seconds
        )
        if result.error:
            log.warning(
                "proxy_failed",
                error_class=result.error.error_class.value,
                status_code=result.status_code,
            )
            return []

        try:
            payload = unwrap_relay_envelope(result.body)
            return self.parse_listing(payload)
        except (EnvelopeError, PayloadValidationError) as e:
            log.warning("proxy_failed", error=str(e))
            return []

    def parse_listing(self, payload: Any) -> list[FeedItem]:
        """Normalize a Reddit listing payload into FeedItems.

        Malformed children are skipped; source order is preserved.

        Args:
            payload: Decoded listing JSON.

        Returns:
            Non-empty list of FeedItems.

        Raises:
            PayloadValidationError: If the payload is not a listing or
                contains no usable posts.
        """
        data = payload.get("data") if isinstance(payload, dict) else None
        children = data.get("children") if isinstance(data, dict) else None
        if not isinstance(children, list):
            msg = "Payload is not a listing (missing data.children)"
            raise PayloadValidationError(msg)

        now = self._clock()
        items: list[FeedItem] = []
        skipped = 0
        for child in children:
            item = self._parse_post(child, now)
            if item is None:
                skipped += 1
                continue
            items.append(item)

        if skipped:
            self._log.debug("posts_skipped", skipped=skipped, kept=len(items))

        if not items:
            msg = f"Listing has no usable posts ({len(children)} children)"
            raise PayloadValidationError(msg)

        return items

    def _parse_post(self, child: Any, now: datetime) -> FeedItem | None:
        """Map one listing child to a FeedItem, or None if malformed."""
        post = child.get("data") if isinstance(child, dict) else None
        if not isinstance(post, dict):
            return None

        post_id = post.get("id")
        title = post.get("title")
        permalink = post.get("permalink")
        if not (post_id and isinstance(title, str) and isinstance(permalink, str)):
            return None

        score = post.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            score = None
        try:
            return FeedItem(
                id=f"{REDDIT_ID_PREFIX}_{post_id}",
                title=title,
                url=f"{REDDIT_POST_BASE_URL}{permalink}",
                source=REDDIT_SOURCE_NAME,
                score=score,
                thumbnail=post.get("thumbnail"),
                created_at=_parse_created_utc(post.get("created_utc"), now),
            )
        except ValidationError:
            return None

    def fallback_items(self, now: datetime) -> list[FeedItem]:
        """Placeholder posts tagged ``Reddit (Fallback)``.

        Args:
            now: Timestamp for createdAt.

        Returns:
            Non-empty list of fallback items.
        """
        subreddit_url = f"{self._base_url.rstrip('/')}/r/{self._subreddit}/"
        return [
            FeedItem(
                id=f"{REDDIT_ID_PREFIX}_fallback_{index}",
                title=title.format(subreddit=self._subreddit),
                url=f"{subreddit_url}{path}",
                source=self.fallback_source,
                created_at=now,
            )
            for index, (title, path) in enumerate(REDDIT_FALLBACK_POSTS)
        ]
