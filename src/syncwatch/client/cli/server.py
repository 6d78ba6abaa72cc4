"""Server command for the syncwatch CLI.

Commands:
- serve: Run the reference sync server with a simulated runner
"""

from __future__ import annotations

import os

import click


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", type=int, default=8000, show_default=True, help="Port to listen on.")
@click.option(
    "--demo-units",
    type=int,
    default=10,
    show_default=True,
    help="Units of work per simulated sync.",
)
@click.option(
    "--demo-step-delay",
    type=float,
    default=0.5,
    show_default=True,
    help="Seconds per simulated unit.",
)
@click.option(
    "--min-sync-interval",
    type=float,
    default=None,
    help="Seconds between a completed sync and the next start (default: 60).",
)
def serve(
    host: str,
    port: int,
    demo_units: int,
    demo_step_delay: float,
    min_sync_interval: float | None,
) -> None:
    """Run the reference sync server.

    The server exposes the status and start endpoints and runs a
    simulated sync, for trying out the watch and refresh commands.
    """
    import uvicorn

    os.environ["SYNCWATCH_DEMO_UNITS"] = str(demo_units)
    os.environ["SYNCWATCH_DEMO_STEP_DELAY"] = str(demo_step_delay)
    if min_sync_interval is not None:
        os.environ["SYNCWATCH_MIN_SYNC_INTERVAL"] = str(min_sync_interval)
        os.environ["SYNCWATCH_MIN_PROJECT_SYNC_INTERVAL"] = str(min_sync_interval)

    click.echo(f"Serving on http://{host}:{port}")
    uvicorn.run("syncwatch.server.app:app_factory", factory=True, host=host, port=port)
