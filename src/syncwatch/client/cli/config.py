"""Configuration utilities for the syncwatch CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from syncwatch.core.config import ServerConfig

DEFAULT_SERVER_URL = "http://localhost:8000"


def get_config_dir() -> Path:
    """Get the configuration directory for syncwatch.

    Returns:
        Path to ~/.syncwatch or equivalent.
    """
    return Path.home() / ".syncwatch"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def resolve_server_config(
    server_url: str | None = None,
    token: str | None = None,
) -> ServerConfig:
    """Build the server configuration for a command.

    Explicit values (options or their environment variables) win over the
    config file, which wins over the default URL.

    Args:
        server_url: URL from --server / SYNCWATCH_SERVER_URL.
        token: Token from --token / SYNCWATCH_TOKEN.

    Returns:
        Server configuration.
    """
    config = load_config()
    return ServerConfig(
        server_url=server_url or config.get("server_url") or DEFAULT_SERVER_URL,
        token=token or config.get("token") or None,
    )


server_option = click.option(
    "--server",
    "server_url",
    envvar="SYNCWATCH_SERVER_URL",
    default=None,
    help="Dashboard server URL (default: config file or http://localhost:8000).",
)

token_option = click.option(
    "--token",
    envvar="SYNCWATCH_TOKEN",
    default=None,
    help="Bearer token for the server API.",
)


@click.group("config")
def config_group() -> None:
    """Show or change the saved configuration."""


@config_group.command("show")
def config_show() -> None:
    """Show the saved configuration."""
    config = load_config()
    if not config:
        click.echo(f"No configuration saved ({get_config_file()})")
        return
    for key, value in sorted(config.items()):
        if key == "token" and value:
            value = value[:4] + "..."
        click.echo(f"{key}: {value}")


@config_group.command("set")
@click.option("--server", "server_url", default=None, help="Dashboard server URL.")
@click.option("--token", default=None, help="Bearer token for the server API.")
def config_set(server_url: str | None, token: str | None) -> None:
    """Save the server URL and/or token."""
    if server_url is None and token is None:
        raise click.UsageError("Nothing to set, pass --server and/or --token.")
    config = load_config()
    if server_url is not None:
        config["server_url"] = server_url.rstrip("/")
    if token is not None:
        config["token"] = token
    save_config(config)
    click.echo(f"Configuration saved to {get_config_file()}")
