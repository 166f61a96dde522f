"""Integration tests for the feed HTTP API.

The full stack runs: FastAPI app -> FeedService -> FeedAggregator ->
Reddit and static adapters -> HttpFetcher, with upstreams served by
``httpx.MockTransport``.
"""

import random
from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from src.aggregator.aggregator import FeedAggregator
from src.aggregator.metrics import AggregatorMetrics
from src.api.app import FEED_STATE_HEADER, create_app, create_default_app
from src.api.auth import StaticTokenVerifier, extract_bearer_token
from src.fetch.metrics import FetchMetrics
from src.serving.factory import build_feed_service
from src.serving.metrics import ServingMetrics
from src.serving.service import FeedService
from src.settings.app import AppSettings
from tests.helpers.time import FakeClock, RecordingSleep
from tests.helpers.upstream import (
    RecordingTransport,
    make_fetcher,
    reddit_listing,
    relay_envelope,
)


AUTH = {"Authorization": "Bearer good-token"}


def _settings(**overrides: object) -> AppSettings:
    return AppSettings(
        _env_file=None,
        api_tokens=["good-token"],
        environment="test",
        relay_url_template="https://relay.example/get?url={url}",
        **overrides,
    )


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    settings: AppSettings | None = None,
) -> tuple[TestClient, FeedService, RecordingTransport]:
    settings = settings or _settings()
    fetcher, transport = make_fetcher(handler)
    service = build_feed_service(
        settings,
        fetcher,
        sleep=RecordingSleep(),
        clock=FakeClock(),
        rng=random.Random(5),
    )
    app = create_app(service, StaticTokenVerifier(settings.api_tokens), settings)
    return TestClient(app), service, transport


def _healthy(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=reddit_listing("a1", "a2", "a3"))


class TestBearerAuth:
    """Tests for the bearer credential check."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        FetchMetrics.reset()
        AggregatorMetrics.reset()
        ServingMetrics.reset()

    def test_missing_token(self) -> None:
        """Test that a request without a token is rejected."""
        client, _, transport = _client(_healthy)

        response = client.get("/api/feed")

        assert response.status_code == 401
        assert response.json() == {"message": "Not authorized, no token"}
        assert transport.requests == []

    def test_wrong_token(self) -> None:
        """Test that an unknown token is rejected."""
        client, _, _ = _client(_healthy)

        response = client.get("/api/feed", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json() == {"message": "Not authorized, token failed"}

    def test_non_bearer_scheme(self) -> None:
        """Test that other schemes count as no token."""
        client, _, _ = _client(_healthy)

        response = client.get("/api/feed", headers={"Authorization": "Basic abc"})

        assert response.status_code == 401

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc", "abc"),
            ("bearer  abc ", "abc"),
            ("Bearer ", None),
            ("Token abc", None),
            (None, None),
        ],
    )
    def test_extract_bearer_token(self, header: str | None, expected: str | None) -> None:
        """Test bearer token parsing."""
        assert extract_bearer_token(header) == expected

    def test_open_mode_accepts_any_token(self) -> None:
        """Test that with no configured tokens any bearer is accepted."""
        verifier = StaticTokenVerifier()

        assert verifier.open_mode is True
        assert verifier.verify("anything") is True
        assert verifier.verify("") is False


class TestFeedEndpoint:
    """Tests for GET /api/feed."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        FetchMetrics.reset()
        AggregatorMetrics.reset()
        ServingMetrics.reset()

    def test_live_feed(self) -> None:
        """Test a healthy upstream merged with the simulated feed."""
        client, _, _ = _client(_healthy)

        response = client.get("/api/feed", headers=AUTH)

        assert response.status_code == 200
        assert response.headers[FEED_STATE_HEADER] == "SERVING_FRESH"
        body = response.json()
        assert isinstance(body, list)
        assert len(body) == 8
        assert len({item["id"] for item in body}) == 8
        sources = {item["source"] for item in body}
        assert sources == {"Reddit", "Twitter"}
        assert set(body[0]) == {
            "id",
            "title",
            "url",
            "source",
            "score",
            "thumbnail",
            "createdAt",
        }

    def test_second_request_served_from_cache(self) -> None:
        """Test that a fresh cache answers without upstream calls."""
        client, _, transport = _client(_healthy)
        first = client.get("/api/feed", headers=AUTH).json()
        calls = len(transport.requests)

        response = client.get("/api/feed", headers=AUTH)

        assert response.headers[FEED_STATE_HEADER] == "SERVING_CACHE"
        assert response.json() == first
        assert len(transport.requests) == calls

    def test_relay_rescue(self) -> None:
        """Test that relayed items are served when Reddit blocks direct calls."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "relay.example":
                return httpx.Response(200, json=relay_envelope(reddit_listing("p1")))
            return httpx.Response(403)

        client, _, _ = _client(handler)

        body = client.get("/api/feed", headers=AUTH).json()

        assert "reddit_p1" in {item["id"] for item in body}

    def test_upstream_down_serves_fallback_with_200(self) -> None:
        """Test that source failures are absorbed into a normal response."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, _, _ = _client(handler)

        response = client.get("/api/feed", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert any(item["source"] == "Reddit (Fallback)" for item in body)
        assert sum(item["source"] == "Twitter" for item in body) == 5

    def test_total_failure_returns_fallback_with_500(self) -> None:
        """Test fallback-only content when aggregation faults with no cache."""
        client, service, _ = _client(_healthy)
        aggregator = MagicMock(spec=FeedAggregator)
        aggregator.aggregate.side_effect = RuntimeError("merge failed")
        service._aggregator = aggregator

        response = client.get("/api/feed", headers=AUTH)

        assert response.status_code == 500
        assert response.headers[FEED_STATE_HEADER] == "SERVING_FALLBACK_ONLY"
        body = response.json()
        assert isinstance(body, list)
        assert len(body) >= 2
        assert len({item["id"] for item in body}) == len(body)


class TestHealthAndErrors:
    """Tests for health reporting and error responses."""

    def setup_method(self) -> None:
        """Reset metrics before each test."""
        FetchMetrics.reset()
        AggregatorMetrics.reset()
        ServingMetrics.reset()

    def test_health(self) -> None:
        """Test the health endpoint without credentials."""
        client, _, _ = _client(_healthy)
        client.get("/api/feed", headers=AUTH)

        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "UP"
        assert body["cache"]["populated"] is True
        assert body["metrics"]["serving"]["requests_total"] == {"SERVING_FRESH": 1}

    def test_unknown_route(self) -> None:
        """Test that 404s use the message body shape."""
        client, _, _ = _client(_healthy)

        response = client.get("/api/nope")

        assert response.status_code == 404
        assert "message" in response.json()

    def test_request_id_echoed(self) -> None:
        """Test that the request id header is returned."""
        client, _, _ = _client(_healthy)

        response = client.get("/api/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"

    def test_unhandled_error_body(self) -> None:
        """Test that unexpected handler errors return message and stack."""
        client, service, _ = _client(_healthy)
        service.get_feed = MagicMock(side_effect=KeyError("boom"))  # type: ignore[method-assign]
        client = TestClient(client.app, raise_server_exceptions=False)

        response = client.get("/api/feed", headers=AUTH)

        assert response.status_code == 500
        body = response.json()
        assert "boom" in body["message"]
        assert body["stack"] is not None

    def test_stack_hidden_in_production(self) -> None:
        """Test that production responses omit the stack trace."""
        client, service, _ = _client(_healthy, _settings().model_copy(
            update={"environment": "production"}
        ))
        service.get_feed = MagicMock(side_effect=KeyError("boom"))  # type: ignore[method-assign]
        client = TestClient(client.app, raise_server_exceptions=False)

        response = client.get("/api/feed", headers=AUTH)

        assert response.status_code == 500
        assert response.json()["stack"] is None

    def test_cors_header_for_client_origin(self) -> None:
        """Test that the configured client origin is allowed."""
        client, _, _ = _client(
            _healthy, _settings(client_url="https://app.example")
        )

        response = client.get(
            "/api/health", headers={"Origin": "https://app.example"}
        )

        assert response.headers["access-control-allow-origin"] == "https://app.example"


class TestDefaultApp:
    """Tests for building the app from environment settings."""

    def test_production_without_tokens_refused(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that production refuses to start with no API tokens."""
        monkeypatch.setenv("FEED_ENVIRONMENT", "production")
        monkeypatch.delenv("FEED_API_TOKENS", raising=False)

        with pytest.raises(ValidationError):
            create_default_app()
