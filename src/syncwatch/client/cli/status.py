"""Status commands for the syncwatch CLI.

Commands:
- status: Print the current sync status once
- watch: Follow the sync status live, globally and per project
"""

from __future__ import annotations

import asyncio
import json
import sys

import click
import httpx

from syncwatch.client.api import APIError, SyncStatusClient
from syncwatch.client.cli.config import resolve_server_config, server_option, token_option
from syncwatch.client.cli.display import StatusBoard, install_log_handler
from syncwatch.client.indicator import format_status
from syncwatch.client.reducer import ObservedState, reduce, scope_snapshot
from syncwatch.client.snapshot import StatusSnapshot
from syncwatch.client.status import StatusPoller
from syncwatch.core.config import ServerConfig

PHASE_MARKS = {"pending": " ", "in_progress": "→", "complete": "✓"}


async def _fetch_status(config: ServerConfig) -> StatusSnapshot:
    async with SyncStatusClient(config) as client:
        return await client.get_status()


@click.command()
@click.option("--project", "-p", default=None, help="Show the status as seen by one project.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw status as JSON.")
@server_option
@token_option
def status(
    project: str | None,
    as_json: bool,
    server_url: str | None,
    token: str | None,
) -> None:
    """Print the current sync status."""
    config = resolve_server_config(server_url, token)
    try:
        snapshot = asyncio.run(_fetch_status(config))
    except APIError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except (httpx.HTTPError, ValueError) as e:
        click.echo(f"Error: cannot read status from {config.server_url}: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
        return

    event = scope_snapshot(snapshot, project)
    state = reduce(ObservedState(), event).state
    progress_text = None
    if state.progress_percent is not None:
        progress_text = f"{state.progress_percent}%"
    click.echo(
        format_status(
            state, progress_text=progress_text, label=project, color=sys.stdout.isatty()
        )
    )

    if event.relevant and state.is_running:
        for phase in snapshot.phases:
            click.echo(f"  [{PHASE_MARKS.get(phase.status, ' ')}] {phase.label}")


async def _watch(
    config: ServerConfig,
    projects: list[str],
    verbose: bool,
    redraw_interval: float,
) -> None:
    async with SyncStatusClient(config) as client:
        pollers: list[tuple[str | None, StatusPoller]] = [
            ("all" if projects else None, StatusPoller(client))
        ]
        pollers += [(project, StatusPoller(client, project_id=project)) for project in projects]

        board = StatusBoard(pollers)
        install_log_handler(board, verbose=verbose)

        for label, poller in pollers:

            def on_reload(label: str | None = label) -> None:
                board.write_above(f"{label or 'dashboard'}: new data available")

            poller.set_callbacks(on_reload=on_reload)
            poller.start()

        try:
            while True:
                board.redraw()
                await asyncio.sleep(redraw_interval)
        finally:
            for _, poller in pollers:
                poller.stop()


@click.command()
@click.option(
    "--project",
    "-p",
    "projects",
    multiple=True,
    help="Also watch the status as seen by this project (repeatable).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show informational log messages.")
@click.option(
    "--redraw-interval",
    type=float,
    default=0.1,
    show_default=True,
    help="Seconds between screen updates.",
)
@server_option
@token_option
def watch(
    projects: tuple[str, ...],
    verbose: bool,
    redraw_interval: float,
    server_url: str | None,
    token: str | None,
) -> None:
    """Follow the sync status live.

    Runs one independent observer for the whole dashboard and one per
    --project, each on its own line.
    """
    config = resolve_server_config(server_url, token)
    click.echo(f"Watching {config.server_url}... (Ctrl+C to stop)\n")
    try:
        asyncio.run(_watch(config, list(projects), verbose, redraw_interval))
    except KeyboardInterrupt:
        click.echo("\nStopping...")
