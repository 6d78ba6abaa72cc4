"""Tests for CLI commands - config, status, refresh, serve."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from syncwatch.client.api import APIError, ConflictError, RateLimitError, StartResult
from syncwatch.client.cli import cli
from syncwatch.client.snapshot import StatusSnapshot
from syncwatch.core.types import SyncState

LAST_SYNC = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)

IDLE = StatusSnapshot(status=SyncState.IDLE)
IDLE_DONE = StatusSnapshot(status=SyncState.IDLE, last_sync_time=LAST_SYNC)


def make_client_class(
    before: StatusSnapshot | Exception = IDLE,
    after: StatusSnapshot | None = None,
    start_error: Exception | None = None,
) -> type:
    """Build a stand-in for SyncStatusClient.

    get_status() serves `before` until a start request succeeds, then
    `after`.
    """

    class FakeClient:
        instances: list[FakeClient] = []

        def __init__(self, config: Any) -> None:
            self.config = config
            self.started: list[str | None] = []
            self.accepted = False
            FakeClient.instances.append(self)

        async def __aenter__(self) -> FakeClient:
            return self

        async def __aexit__(self, *args: object) -> None:
            pass

        async def get_status(self) -> StatusSnapshot:
            current = after if self.accepted and after is not None else before
            if isinstance(current, Exception):
                raise current
            return current

        async def start_sync(self, project_id: str | None = None) -> StartResult:
            self.started.append(project_id)
            if start_error is not None:
                raise start_error
            self.accepted = True
            return StartResult(message="Sync started", status="syncing")

    return FakeClient


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the config directory at a temp dir and isolate the environment."""
    monkeypatch.delenv("SYNCWATCH_SERVER_URL", raising=False)
    monkeypatch.delenv("SYNCWATCH_TOKEN", raising=False)
    with patch("syncwatch.client.cli.config.get_config_dir", return_value=tmp_path):
        yield tmp_path


@pytest.fixture(autouse=True)
def restore_logger() -> Iterator[None]:
    """Undo the log handler the live commands install."""
    syncwatch_logger = logging.getLogger("syncwatch")
    handlers = syncwatch_logger.handlers[:]
    level, propagate = syncwatch_logger.level, syncwatch_logger.propagate
    yield
    syncwatch_logger.handlers = handlers
    syncwatch_logger.setLevel(level)
    syncwatch_logger.propagate = propagate


class TestConfigCommands:
    """Tests for 'syncwatch config'."""

    def test_show_empty(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "No configuration saved" in result.output

    def test_set_then_show(self, runner: CliRunner, config_dir: Path) -> None:
        result = runner.invoke(
            cli, ["config", "set", "--server", "http://dash:9000/", "--token", "abcdefgh"]
        )
        assert result.exit_code == 0
        saved = json.loads((config_dir / "config.json").read_text())
        assert saved == {"server_url": "http://dash:9000", "token": "abcdefgh"}

        result = runner.invoke(cli, ["config", "show"])
        assert "server_url: http://dash:9000" in result.output
        assert "token: abcd..." in result.output
        assert "abcdefgh" not in result.output

    def test_set_requires_a_value(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["config", "set"])
        assert result.exit_code == 2

    def test_saved_server_is_used(self, runner: CliRunner) -> None:
        runner.invoke(cli, ["config", "set", "--server", "http://dash:9000", "--token", "tok"])
        client_class = make_client_class()
        with patch("syncwatch.client.cli.status.SyncStatusClient", client_class):
            runner.invoke(cli, ["status"])
        config = client_class.instances[0].config
        assert config.server_url == "http://dash:9000"
        assert config.token == "tok"

    def test_option_overrides_saved_server(self, runner: CliRunner) -> None:
        runner.invoke(cli, ["config", "set", "--server", "http://dash:9000"])
        client_class = make_client_class()
        with patch("syncwatch.client.cli.status.SyncStatusClient", client_class):
            runner.invoke(cli, ["status", "--server", "http://other:1"])
        assert client_class.instances[0].config.server_url == "http://other:1"


class TestStatusCommand:
    """Tests for 'syncwatch status'."""

    def test_idle(self, runner: CliRunner) -> None:
        with patch("syncwatch.client.cli.status.SyncStatusClient", make_client_class(IDLE)):
            result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Never synced" in result.output

    def test_syncing(self, runner: CliRunner) -> None:
        snapshot = StatusSnapshot(
            status=SyncState.SYNCING, is_running=True, progress_percent=40, syncing_project_id="proj-1"
        )
        with patch("syncwatch.client.cli.status.SyncStatusClient", make_client_class(snapshot)):
            result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Syncing project proj-1 40%" in result.output

    def test_other_project_shows_idle(self, runner: CliRunner) -> None:
        snapshot = StatusSnapshot(
            status=SyncState.SYNCING, is_running=True, progress_percent=40, syncing_project_id="proj-1"
        )
        with patch("syncwatch.client.cli.status.SyncStatusClient", make_client_class(snapshot)):
            result = runner.invoke(cli, ["status", "--project", "proj-2"])
        assert result.exit_code == 0
        assert "Syncing" not in result.output

    def test_json(self, runner: CliRunner) -> None:
        with patch("syncwatch.client.cli.status.SyncStatusClient", make_client_class(IDLE_DONE)):
            result = runner.invoke(cli, ["status", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["status"] == "idle"
        assert data["lastSyncTime"] == 1735725600000

    def test_server_error(self, runner: CliRunner) -> None:
        client_class = make_client_class(APIError("Unexpected status 500", 500))
        with patch("syncwatch.client.cli.status.SyncStatusClient", client_class):
            result = runner.invoke(cli, ["status"])
        assert result.exit_code == 1
        assert "Error: Unexpected status 500" in result.output


class TestRefreshCommand:
    """Tests for 'syncwatch refresh'."""

    def test_started_without_waiting(self, runner: CliRunner) -> None:
        client_class = make_client_class(IDLE)
        with patch("syncwatch.client.cli.refresh.SyncStatusClient", client_class):
            result = runner.invoke(cli, ["refresh", "--no-wait", "--project", "proj-1"])
        assert result.exit_code == 0
        assert "Sync started." in result.output
        assert client_class.instances[0].started == ["proj-1"]

    def test_already_running_is_not_restarted(self, runner: CliRunner) -> None:
        syncing = StatusSnapshot(status=SyncState.SYNCING, is_running=True, progress_percent=10)
        client_class = make_client_class(syncing)
        with patch("syncwatch.client.cli.refresh.SyncStatusClient", client_class):
            result = runner.invoke(cli, ["refresh", "--no-wait"])
        assert result.exit_code == 0
        assert "already running" in result.output
        assert client_class.instances[0].started == []

    def test_conflict_is_not_an_error(self, runner: CliRunner) -> None:
        client_class = make_client_class(
            IDLE, start_error=ConflictError("Sync already in progress", 409)
        )
        with patch("syncwatch.client.cli.refresh.SyncStatusClient", client_class):
            result = runner.invoke(cli, ["refresh", "--no-wait"])
        assert result.exit_code == 0
        assert "deferred" in result.output
        assert "Error" not in result.output

    def test_hard_failure_exits_nonzero(self, runner: CliRunner) -> None:
        client_class = make_client_class(IDLE, start_error=APIError("Invalid admin password", 403))
        with patch("syncwatch.client.cli.refresh.SyncStatusClient", client_class):
            result = runner.invoke(cli, ["refresh", "--no-wait"])
        assert result.exit_code == 1
        assert "Invalid admin password" in result.output

    def test_wait_until_complete(self, runner: CliRunner) -> None:
        client_class = make_client_class(IDLE, after=IDLE_DONE)
        with patch("syncwatch.client.cli.refresh.SyncStatusClient", client_class):
            result = runner.invoke(cli, ["refresh", "--timeout", "10"])
        assert result.exit_code == 0
        assert "Sync complete, new data available." in result.output

    def test_rate_limited_wait_reports_no_completion(self, runner: CliRunner) -> None:
        """A 429 with no job running settles without claiming new data."""
        client_class = make_client_class(
            IDLE_DONE,
            start_error=RateLimitError("Rate limit: Please wait 42 seconds before syncing again", 429),
        )
        with patch("syncwatch.client.cli.refresh.SyncStatusClient", client_class):
            result = runner.invoke(cli, ["refresh", "--timeout", "10"])
        assert result.exit_code == 0
        assert "deferred" in result.output
        assert "Sync complete" not in result.output


class TestServeCommand:
    def test_runs_uvicorn_factory(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        # Registered so the values the command writes are removed afterwards
        for name in (
            "SYNCWATCH_DEMO_UNITS",
            "SYNCWATCH_DEMO_STEP_DELAY",
            "SYNCWATCH_MIN_SYNC_INTERVAL",
            "SYNCWATCH_MIN_PROJECT_SYNC_INTERVAL",
        ):
            monkeypatch.setenv(name, "")

        with patch("uvicorn.run") as run:
            result = runner.invoke(
                cli, ["serve", "--port", "9001", "--demo-units", "4", "--min-sync-interval", "0"]
            )
        assert result.exit_code == 0
        run.assert_called_once_with(
            "syncwatch.server.app:app_factory", factory=True, host="127.0.0.1", port=9001
        )
        assert os.environ["SYNCWATCH_DEMO_UNITS"] == "4"
        assert os.environ["SYNCWATCH_MIN_SYNC_INTERVAL"] == "0.0"
