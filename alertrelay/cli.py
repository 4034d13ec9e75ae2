"""
Command-line interface for alertrelay.

Usage:
    alertrelay serve                        # Run the HTTP relay
    alertrelay check-config                 # Validate rooms and templates
    alertrelay render ROOM payload.json     # Preview messages for a payload
"""

import asyncio
import json
import os
import sys

import click

from alertrelay.alerts.errors import ConfigurationError
from alertrelay.config.settings import CONFIG_PATH_ENV, Settings, load_settings
from alertrelay.observability.logging import setup_logging


def _load(ctx: click.Context) -> Settings:
    try:
        return load_settings(ctx.obj["config"])
    except ConfigurationError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    default=None,
    envvar=CONFIG_PATH_ENV,
    help="Path to a TOML config file (default: config.toml)",
)
@click.pass_context
def main(ctx: click.Context, debug: bool, config_path: str | None) -> None:
    """alertrelay - Relay Alertmanager notifications to chat rooms."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    ctx.obj["debug"] = debug


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the relay HTTP server."""
    import uvicorn

    settings = _load(ctx)
    log_level = "DEBUG" if ctx.obj["debug"] else settings.app.log_level
    setup_logging(log_level, json_logs=settings.app.is_production)

    host = host or settings.app.host
    port = port or settings.app.port

    # The factory reloads settings in the server process from this path.
    if ctx.obj["config"]:
        os.environ[CONFIG_PATH_ENV] = ctx.obj["config"]

    click.echo(f"Starting alertrelay on {host}:{port}")
    click.echo(f"Rooms: {', '.join(sorted(settings.providers))}")

    uvicorn.run(
        "alertrelay.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        timeout_keep_alive=int(settings.app.server_timeout.total_seconds()),
        log_level=log_level.lower(),
    )


@main.command("check-config")
@click.pass_context
def check_config(ctx: click.Context) -> None:
    """Load the config and build every provider, parsing templates."""
    from alertrelay.alerts.providers import build_providers

    settings = _load(ctx)
    try:
        providers = build_providers(settings.providers)
    except ConfigurationError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)

    for provider in providers:
        cfg = settings.providers[provider.room]
        flags = []
        if cfg.threaded_replies:
            flags.append("threaded")
        if cfg.dry_run:
            flags.append("dry-run")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"  {provider.room} ({provider.id}){suffix}")
    click.echo(f"OK: {len(providers)} room(s) configured")

    async def close() -> None:
        for provider in providers:
            await provider.stop()

    asyncio.run(close())


@main.command()
@click.argument("room")
@click.argument("payload_file", type=click.File("r"))
@click.pass_context
def render(ctx: click.Context, room: str, payload_file) -> None:
    """Render an Alertmanager payload through ROOM's template.

    Prints each chunk that would be posted. No requests are made.
    """
    from alertrelay.alerts.rendering import MessageRenderer
    from alertrelay.api.models import WebhookPayload

    settings = _load(ctx)
    cfg = settings.providers.get(room)
    if cfg is None:
        click.echo(
            f"error: unknown room {room!r}, available: {sorted(settings.providers)}",
            err=True,
        )
        sys.exit(1)

    try:
        renderer = MessageRenderer(
            template_path=cfg.template or None,
            max_size=cfg.max_message_size,
            default_timezone=cfg.timezone,
        )
    except ConfigurationError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)

    payload = WebhookPayload.model_validate(json.load(payload_file))
    alerts = [item.to_alert() for item in payload.alerts]
    chunks, errors = renderer.prepare_batch(alerts)

    for i, chunk in enumerate(chunks, start=1):
        click.echo(f"--- chunk {i}/{len(chunks)} ({chunk.size} bytes) ---")
        click.echo(chunk.text, nl=False)
    for error in errors:
        click.echo(f"error: {error}", err=True)

    if errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
