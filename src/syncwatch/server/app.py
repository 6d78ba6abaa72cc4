"""FastAPI application for the syncwatch reference server.

This module creates and configures the FastAPI application with:
- Sync status and start endpoints backed by an in-memory SyncJob
- Health check

Usage:
    uvicorn syncwatch.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from syncwatch.server.api.router import router as api_router
from syncwatch.server.state import (
    MIN_PROJECT_SYNC_INTERVAL,
    MIN_SYNC_INTERVAL,
    SyncJob,
    simulated_runner,
)

# Configuration from environment variables with defaults
LOG_PATH = Path(os.environ.get("SYNCWATCH_LOG_PATH", "syncwatch-server.log"))

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for syncwatch
    root_logger = logging.getLogger("syncwatch")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(job: SyncJob, api_token: str | None = None) -> FastAPI:
    """Create FastAPI application around a sync job.

    This is primarily used for testing with custom runners.

    Args:
        job: SyncJob instance serving the endpoints.
        api_token: Bearer token required by the sync endpoints, if any.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("syncwatch server starting")
        logger.info("  Auth: %s", "bearer token" if api_token else "disabled")

        yield

        task = job.task
        if task is not None and not task.done():
            logger.info("Cancelling running sync")
            task.cancel()
        logger.info("syncwatch server shutting down")

    application = FastAPI(
        title="syncwatch",
        description="Sync job status and control",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.job = job
    application.state.api_token = api_token

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode.

    Serves a simulated runner; the number of units per job and the delay
    between them come from SYNCWATCH_DEMO_UNITS and SYNCWATCH_DEMO_STEP_DELAY.
    """
    setup_logging(LOG_PATH)
    runner = functools.partial(
        simulated_runner,
        units=int(os.environ.get("SYNCWATCH_DEMO_UNITS", "10")),
        step_delay=float(os.environ.get("SYNCWATCH_DEMO_STEP_DELAY", "0.5")),
    )
    job = SyncJob(
        runner,
        min_sync_interval=float(
            os.environ.get("SYNCWATCH_MIN_SYNC_INTERVAL", str(MIN_SYNC_INTERVAL))
        ),
        min_project_sync_interval=float(
            os.environ.get(
                "SYNCWATCH_MIN_PROJECT_SYNC_INTERVAL", str(MIN_PROJECT_SYNC_INTERVAL)
            )
        ),
    )
    return create_app(job, api_token=os.environ.get("SYNCWATCH_API_TOKEN") or None)
