"""Command line: run the webhook server or register it with Telegram."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
import uvicorn

from anon_relay import __version__
from anon_relay.config import Settings, load_settings
from anon_relay.errors import ConfigError
from anon_relay.logging_config import setup_logging
from anon_relay.sender import TelegramSender

logger = logging.getLogger(__name__)


def _load(ctx: typer.Context) -> Settings:
    try:
        settings = load_settings(ctx.obj.get("config"))
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    setup_logging(settings.log_level, settings.log_file)
    return settings


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def app_main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a JSON config file (environment variables take precedence).",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Anonymous relay bot for Telegram group chats."""
    ctx.obj = {"config": config}
    if ctx.invoked_subcommand is None:
        run(ctx)


def run(ctx: typer.Context) -> None:
    """Start the webhook server."""
    from anon_relay.main import create_app

    settings = _load(ctx)
    logger.info(f"Starting relay bot on {settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        ssl_certfile=settings.tls_cert if settings.tls_enabled else None,
        ssl_keyfile=settings.tls_key if settings.tls_enabled else None,
        log_config=None,
    )


async def _register_webhook(settings: Settings) -> bool:
    sender = TelegramSender(settings.bot_token)
    await sender.start()
    try:
        return await sender.set_webhook(
            settings.webhook_url,
            certificate=settings.tls_cert,
            secret_token=settings.secret_token,
        )
    finally:
        await sender.stop()


def setup(ctx: typer.Context) -> None:
    """Register this server's /update endpoint as the bot's webhook."""
    settings = _load(ctx)
    try:
        url = settings.webhook_url
    except ConfigError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e

    ok = asyncio.run(_register_webhook(settings))
    if not ok:
        typer.echo("error: Telegram rejected the webhook", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"webhook set to {url}")


def create_cli() -> typer.Typer:
    app = typer.Typer(add_completion=False)
    app.callback(invoke_without_command=True)(app_main)
    app.command()(run)
    app.command()(setup)
    return app


def main() -> None:
    create_cli()()
