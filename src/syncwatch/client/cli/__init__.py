"""Command-line interface for syncwatch.

This module provides the main CLI entry point and assembles all commands.

Commands:
- status: Print the current sync status
- watch: Follow the sync status live
- refresh: Start a sync and follow it
- serve: Run the reference sync server
- config: Show or change the saved configuration
"""

from __future__ import annotations

import click

from syncwatch.client.cli.config import (
    config_group,
    get_config_dir,
    get_config_file,
    load_config,
    resolve_server_config,
    save_config,
)
from syncwatch.client.cli.refresh import refresh
from syncwatch.client.cli.server import serve
from syncwatch.client.cli.status import status, watch


@click.group()
@click.version_option(package_name="syncwatch")
def cli() -> None:
    """syncwatch - follow a dashboard's background sync."""


# Status commands
cli.add_command(status)
cli.add_command(watch)

# Sync control
cli.add_command(refresh)

# Server
cli.add_command(serve)

# Configuration
cli.add_command(config_group)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "load_config",
    "resolve_server_config",
    "save_config",
]
