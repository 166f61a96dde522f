"""HTTP surface for the feed service."""

import traceback
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Annotated, Any

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.aggregator.metrics import AggregatorMetrics
from src.api.auth import StaticTokenVerifier, TokenVerifier, extract_bearer_token
from src.fetch.client import HttpFetcher
from src.fetch.metrics import FetchMetrics
from src.observability.logging import bind_request_context, clear_request_context
from src.serving.factory import build_feed_service, fetch_config_from_settings
from src.serving.metrics import ServingMetrics
from src.serving.service import FeedService
from src.settings.app import AppSettings, get_settings


logger = structlog.get_logger()

APP_TITLE = "Feed Aggregator"
APP_VERSION = "1.0.0"
FEED_STATE_HEADER = "X-Feed-State"


def create_app(
    service: FeedService,
    verifier: TokenVerifier,
    settings: AppSettings | None = None,
    lifespan: Callable[[FastAPI], Any] | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        service: Feed service answering feed requests.
        verifier: External bearer credential verifier.
        settings: Application settings (CORS origin, environment).
        lifespan: Optional lifespan context for resource cleanup.

    Returns:
        Configured FastAPI app.
    """
    settings = settings or get_settings()
    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
    app.state.feed_service = service
    app.state.settings = settings

    if settings.client_url:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[settings.client_url],
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["Authorization"],
        )

    def require_bearer(
        authorization: Annotated[str | None, Header()] = None,
    ) -> None:
        token = extract_bearer_token(authorization)
        if token is None:
            raise HTTPException(
                status_code=401, detail="Not authorized, no token"
            )
        if not verifier.verify(token):
            raise HTTPException(
                status_code=401, detail="Not authorized, token failed"
            )

    @app.middleware("http")
    async def request_context(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        bind_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        logger.info(
            "request_rejected",
            path=request.url.path,
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            exc_info=exc,
        )
        stack = None
        if not settings.is_production:
            stack = "".join(traceback.format_exception(exc))
        return JSONResponse(
            status_code=500,
            content={"message": str(exc) or "Internal Server Error", "stack": stack},
        )

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {
            "status": "UP",
            "message": "API is healthy",
            "cache": service.cache_status(),
            "metrics": {
                "serving": ServingMetrics.get_instance().to_dict(),
                "aggregator": AggregatorMetrics.get_instance().to_dict(),
                "fetch": FetchMetrics.get_instance().to_dict(),
            },
        }

    @app.get("/api/feed", dependencies=[Depends(require_bearer)])
    def get_feed() -> JSONResponse:
        response = service.get_feed()
        return JSONResponse(
            status_code=int(response.status_code),
            content=response.to_wire(),
            headers={FEED_STATE_HEADER: response.state.value},
        )

    return app


def create_default_app() -> FastAPI:
    """Build the app from environment settings (uvicorn factory)."""
    settings = get_settings()
    http_client = HttpFetcher(fetch_config_from_settings(settings))
    service = build_feed_service(settings, http_client)
    verifier = StaticTokenVerifier(settings.api_tokens)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "service_started",
            sources=[adapter.source_id for adapter in service.adapters],
            cache_ttl_seconds=settings.cache_ttl_seconds,
        )
        if verifier.open_mode:
            logger.warning("auth_open_mode", environment=settings.environment)
        yield
        http_client.close()
        logger.info("service_stopped")

    return create_app(
        service,
        verifier,
        settings=settings,
        lifespan=lifespan,
    )
