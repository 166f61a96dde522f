"""CLI commands for the feed service."""

import json
import logging
import sys
from http import HTTPStatus

import click
import structlog
from pydantic import ValidationError

from src.api.app import APP_VERSION
from src.fetch.client import HttpFetcher
from src.observability.logging import configure_logging
from src.serving.factory import build_feed_service, fetch_config_from_settings
from src.settings.app import AppSettings, get_settings
from src.settings.error_hints import format_settings_errors


logger = structlog.get_logger()


def _load_settings() -> AppSettings:
    """Load settings or exit with readable hints."""
    try:
        return get_settings()
    except ValidationError as e:
        click.echo("Invalid settings:", err=True)
        for line in format_settings_errors(e):
            click.echo(f"  - {line}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=APP_VERSION)
def cli() -> None:
    """Feed aggregator CLI."""


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port.")
@click.option(
    "--json-logs/--no-json-logs",
    default=None,
    help="Override FEED_LOG_JSON.",
)
def serve(host: str, port: int, json_logs: bool | None) -> None:
    """Serve GET /api/feed over HTTP."""
    import uvicorn

    settings = _load_settings()
    configure_logging(
        level=settings.log_level_value,
        json_format=settings.log_json if json_logs is None else json_logs,
    )
    logger.info("server_starting", host=host, port=port)
    uvicorn.run(
        "src.api.app:create_default_app",
        factory=True,
        host=host,
        port=port,
        log_config=None,
    )


@cli.command()
@click.option("--pretty", is_flag=True, help="Indent the JSON output.")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging.",
)
def fetch(pretty: bool, verbose: bool) -> None:
    """Aggregate once and print the feed as JSON."""
    settings = _load_settings()
    configure_logging(
        level=logging.DEBUG if verbose else settings.log_level_value,
        json_format=settings.log_json,
    )

    with HttpFetcher(fetch_config_from_settings(settings)) as http_client:
        service = build_feed_service(settings, http_client)
        response = service.get_feed()

    click.echo(
        json.dumps(
            response.to_wire(),
            indent=2 if pretty else None,
            ensure_ascii=False,
        )
    )
    if response.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        sys.exit(1)


@cli.command("settings")
def show_settings() -> None:
    """Print the effective settings (secrets redacted)."""
    settings = _load_settings()
    click.echo(json.dumps(settings.redacted(), indent=2, sort_keys=True))


if __name__ == "__main__":
    cli()
