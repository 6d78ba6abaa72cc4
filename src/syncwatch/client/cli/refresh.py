"""Refresh command for the syncwatch CLI.

Commands:
- refresh: Start a sync and follow it until it completes
"""

from __future__ import annotations

import asyncio
import sys

import click
import httpx

from syncwatch.client.api import APIError, SyncStatusClient
from syncwatch.client.cli.config import resolve_server_config, server_option, token_option
from syncwatch.client.cli.display import StatusBoard, install_log_handler
from syncwatch.client.reducer import ObservedState, scope_snapshot
from syncwatch.client.refresh import RefreshInitiator, RefreshOutcome
from syncwatch.client.status import StatusPoller
from syncwatch.core.config import ServerConfig
from syncwatch.core.types import SyncState


async def _wait_until_settled(poller: StatusPoller, board: StatusBoard, interval: float) -> None:
    """Redraw until the observer leaves the syncing state."""
    while not poller.closed and (
        poller.state.sync_status == SyncState.SYNCING or poller.request_pending
    ):
        board.redraw()
        await asyncio.sleep(interval)
    board.redraw()


async def _refresh(
    config: ServerConfig,
    project: str | None,
    wait: bool,
    redraw_interval: float = 0.1,
) -> ObservedState:
    async with SyncStatusClient(config) as client:
        poller = StatusPoller(client, project_id=project)
        initiator = RefreshInitiator(client, poller)
        board = StatusBoard([(project, poller)])
        install_log_handler(board)

        reloaded: list[bool] = []
        poller.set_callbacks(on_reload=lambda: reloaded.append(True))

        # Learn the current state first so a running job is not started twice
        poller.dispatch(scope_snapshot(await client.get_status(), project))
        poller.start()

        try:
            outcome = await initiator.request_refresh()
            if outcome is RefreshOutcome.SKIPPED:
                board.write_above("A sync is already running.")
            elif outcome is RefreshOutcome.BUSY:
                board.write_above("The server deferred the request, showing its current status.")
            elif outcome is RefreshOutcome.FAILED:
                board.redraw()
                return poller.state
            else:
                board.write_above("Sync started.")

            if wait:
                await _wait_until_settled(poller, board, redraw_interval)
                if reloaded:
                    board.write_above("Sync complete, new data available.")
            else:
                board.redraw()
            return poller.state
        finally:
            poller.stop()


@click.command()
@click.option("--project", "-p", default=None, help="Sync only this project.")
@click.option(
    "--wait/--no-wait",
    default=True,
    show_default=True,
    help="Follow the sync until it completes.",
)
@click.option("--timeout", type=float, default=None, help="Give up waiting after N seconds.")
@server_option
@token_option
def refresh(
    project: str | None,
    wait: bool,
    timeout: float | None,
    server_url: str | None,
    token: str | None,
) -> None:
    """Start a sync on the server.

    Examples:

        # Sync everything and follow progress
        syncwatch refresh

        # Sync one project without waiting
        syncwatch refresh --project proj-1 --no-wait
    """
    config = resolve_server_config(server_url, token)
    try:
        state = asyncio.run(
            asyncio.wait_for(_refresh(config, project, wait), timeout=timeout)
        )
    except asyncio.TimeoutError:
        click.echo(f"Error: sync still running after {timeout:.0f}s", err=True)
        sys.exit(1)
    except APIError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except (httpx.HTTPError, ValueError) as e:
        click.echo(f"Error: cannot reach {config.server_url}: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nStopped following the sync (it keeps running on the server).")
        return

    if state.sync_status == SyncState.ERROR:
        sys.exit(1)
