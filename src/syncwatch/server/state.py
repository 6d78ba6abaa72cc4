"""In-memory state of the server-side sync job.

This module provides:
- SyncJob: Owns the job status, enforces exclusivity and rate limits,
  and runs the injected runner as an asyncio task
- SyncProgress: Handle the runner uses to report progress, phases and counters
- JobStats: Counters of the current job
- phase_list: Phase statuses relative to the current phase
- simulated_runner: Runner that walks through units of work, for demos

The runner performs the actual data pull and is not part of this package.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any

from syncwatch.core.types import SyncState

logger = logging.getLogger(__name__)

# Rate limits between the end of a successful sync and the next start
MIN_SYNC_INTERVAL = 60.0  # seconds
MIN_PROJECT_SYNC_INTERVAL = 30.0  # seconds

# Phases of a full sync, in execution order
SYNC_PHASES = (
    ("initial_issues", "Initial Issues"),
    ("recently_updated_issues", "Recently Updated Issues"),
    ("active_projects", "Active Projects"),
    ("planned_projects", "Planned Projects"),
    ("completed_projects", "Completed Projects"),
    ("computing_metrics", "Computing Metrics"),
    ("complete", "Complete"),
)


def phase_list(current_phase: str | None, all_complete: bool = False) -> list[dict[str, str]]:
    """Every known phase with its status relative to the current one.

    Args:
        current_phase: Phase being executed (or where an interrupted job
            stopped). Unknown names leave every phase pending.
        all_complete: Mark every phase complete when there is no current
            phase, after a finished sync.

    Returns:
        List of {phase, label, status} dicts in execution order.
    """
    names = [name for name, _ in SYNC_PHASES]
    current = names.index(current_phase) if current_phase in names else None
    phases = []
    for index, (name, label) in enumerate(SYNC_PHASES):
        status = "pending"
        if current is not None:
            if index < current:
                status = "complete"
            elif index == current:
                status = "in_progress"
        elif current_phase is None and all_complete:
            status = "complete"
        phases.append({"phase": name, "label": label, "status": status})
    return phases


class SyncStartError(Exception):
    """A sync job could not be started."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SyncAlreadyRunning(SyncStartError):
    """Another job is running."""


class SyncRateLimited(SyncStartError):
    """The previous sync finished too recently."""

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


@dataclass
class PartialState:
    """Units completed by a job that stopped early."""

    completed: int
    total: int
    project_id: str | None = None
    phase: str | None = None


@dataclass
class JobStats:
    """Counters reported by the runner of the current job."""

    started_issues_count: int = 0
    total_projects_count: int = 0
    current_project_index: int = 0
    current_project_name: str | None = None
    project_issues_count: int = 0
    new_count: int = 0
    updated_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "startedIssuesCount": self.started_issues_count,
            "totalProjectsCount": self.total_projects_count,
            "currentProjectIndex": self.current_project_index,
            "currentProjectName": self.current_project_name,
            "projectIssuesCount": self.project_issues_count,
            "newCount": self.new_count,
            "updatedCount": self.updated_count,
        }


class SyncProgress:
    """Progress reporter handed to the runner."""

    def __init__(self, job: SyncJob, resume_from: int = 0) -> None:
        self._job = job
        self._resume_from = resume_from

    @property
    def resume_from(self) -> int:
        """Units already completed by an interrupted previous run."""
        return self._resume_from

    def set_percent(self, percent: int) -> None:
        self._job.progress_percent = max(0, min(int(percent), 100))

    def set_units(self, completed: int, total: int) -> None:
        """Report units of work done; drives percent and resumability."""
        completed = max(0, min(completed, total))
        self._job.units_completed = completed
        self._job.units_total = total
        if total > 0:
            self.set_percent(math.floor(completed * 100 / total))

    def set_phase(self, phase: str) -> None:
        """Enter a phase; earlier phases of SYNC_PHASES are reported complete."""
        self._job.current_phase = phase

    def set_message(self, message: str) -> None:
        self._job.status_message = message

    def update_stats(self, **counters: Any) -> None:
        """Overwrite some job counters (JobStats field names).

        Raises:
            TypeError: If a counter name is unknown.
        """
        self._job.stats = replace(self._job.stats or JobStats(), **counters)

    def count_queries(self, count: int = 1) -> None:
        """Record upstream API calls made by the runner."""
        self._job.api_query_count = (self._job.api_query_count or 0) + count


Runner = Callable[[SyncProgress, "str | None"], Awaitable[None]]


async def simulated_runner(
    progress: SyncProgress,
    project_id: str | None,
    units: int = 10,
    step_delay: float = 0.5,
) -> None:
    """Walk through units of work, sleeping between them.

    Units are spread over the work phases of SYNC_PHASES, one simulated
    upstream query and a handful of issues per unit.
    """
    target = f"project {project_id}" if project_id else "all projects"
    work_phases = [name for name, _ in SYNC_PHASES[:-1]]
    progress.update_stats(total_projects_count=units)
    for done in range(progress.resume_from, units):
        progress.set_phase(work_phases[done * len(work_phases) // units])
        progress.set_message(f"Syncing {target} ({done + 1}/{units})")
        progress.update_stats(
            current_project_index=done + 1,
            current_project_name=project_id or f"project-{done + 1}",
            started_issues_count=(done + 1) * 5,
            new_count=done + 1,
        )
        await asyncio.sleep(step_delay)
        progress.count_queries()
        progress.set_units(done + 1, units)
    progress.set_phase("complete")


class SyncJob:
    """The single sync job of a server.

    At most one job runs at a time. Rate-limit rejections do not change
    the job's status.
    """

    def __init__(
        self,
        runner: Runner,
        min_sync_interval: float = MIN_SYNC_INTERVAL,
        min_project_sync_interval: float = MIN_PROJECT_SYNC_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the job.

        Args:
            runner: Coroutine function performing the data pull.
            min_sync_interval: Seconds between a full sync and the next start.
            min_project_sync_interval: Same for project syncs.
            clock: Wall clock in seconds since the epoch.
        """
        self._runner = runner
        self._min_sync_interval = min_sync_interval
        self._min_project_sync_interval = min_project_sync_interval
        self._clock = clock

        self.status = SyncState.IDLE
        self.is_running = False
        self.last_sync_time: float | None = None
        self.error: str | None = None
        self.progress_percent: int | None = None
        self.syncing_project_id: str | None = None
        self.current_phase: str | None = None
        self.status_message: str | None = None
        self.units_completed = 0
        self.units_total = 0
        self.stats: JobStats | None = None
        self.api_query_count: int | None = None
        self.partial: PartialState | None = None

        self._task: asyncio.Task[None] | None = None

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self, project_id: str | None = None) -> bool:
        """Start a job on the running event loop.

        Args:
            project_id: Limit the job to one project; None for a full sync.

        Returns:
            True if a job was started, False if the same project sync is
            already running.

        Raises:
            SyncAlreadyRunning: If a different job is running.
            SyncRateLimited: If the last sync finished too recently.
        """
        if self.is_running:
            if project_id is not None and self.syncing_project_id == project_id:
                return False
            target = self.syncing_project_id or "all projects"
            logger.info(f"Sync rejected: already in progress for {target}")
            raise SyncAlreadyRunning(f"Sync already in progress for {target}")

        interval = (
            self._min_project_sync_interval if project_id else self._min_sync_interval
        )
        if self.last_sync_time is not None:
            elapsed = self._clock() - self.last_sync_time
            if elapsed < interval:
                wait = math.ceil(interval - elapsed)
                logger.info(f"Sync rate limited: last sync {int(elapsed)}s ago, wait {wait}s")
                raise SyncRateLimited(
                    f"Rate limit: Please wait {wait} seconds before syncing again", wait
                )

        resume_from = 0
        if self.partial is not None and self.partial.project_id == project_id:
            resume_from = self.partial.completed
            logger.info(f"Resuming partial sync at {resume_from}/{self.partial.total}")

        self.status = SyncState.SYNCING
        self.is_running = True
        self.error = None
        self.progress_percent = 0
        self.syncing_project_id = project_id
        self.current_phase = None
        self.status_message = "Starting sync..."
        self.units_completed = resume_from
        self.units_total = self.partial.total if resume_from else 0
        self.stats = JobStats()
        self.api_query_count = 0

        progress = SyncProgress(self, resume_from=resume_from)
        self._task = asyncio.get_running_loop().create_task(self._run(progress, project_id))
        logger.info(f"Sync started for {project_id or 'all projects'}")
        return True

    async def _run(self, progress: SyncProgress, project_id: str | None) -> None:
        started = self._clock()
        try:
            await self._runner(progress, project_id)
        except asyncio.CancelledError:
            self._fail("Sync cancelled", project_id)
            raise
        except Exception as e:
            logger.error(f"Sync failed after {self._clock() - started:.1f}s: {e}")
            self._fail(str(e) or type(e).__name__, project_id)
        else:
            logger.info(f"Sync completed in {self._clock() - started:.1f}s")
            self.status = SyncState.IDLE
            self.last_sync_time = self._clock()
            self.partial = None
            self._settle()

    def _fail(self, message: str, project_id: str | None) -> None:
        self.status = SyncState.ERROR
        self.error = message
        if 0 < self.units_completed < self.units_total:
            self.partial = PartialState(
                self.units_completed, self.units_total, project_id, phase=self.current_phase
            )
        self._settle()

    def _settle(self) -> None:
        self.is_running = False
        self.progress_percent = None
        self.syncing_project_id = None
        self.current_phase = None
        self.status_message = None

    def snapshot(self) -> dict[str, Any]:
        """Current status in the wire shape of the status endpoint."""
        partial = None
        if self.partial is not None:
            partial = {"completed": self.partial.completed, "total": self.partial.total}
        current_phase = self.current_phase
        if not self.is_running and self.partial is not None:
            # Where the interrupted job stopped
            current_phase = self.partial.phase
        finished = (
            self.status == SyncState.IDLE
            and self.partial is None
            and self.last_sync_time is not None
        )
        return {
            "status": self.status.value,
            "isRunning": self.is_running,
            "lastSyncTime": (
                int(self.last_sync_time * 1000) if self.last_sync_time is not None else None
            ),
            "progressPercent": self.progress_percent,
            "syncingProjectId": self.syncing_project_id,
            "hasPartialSync": self.partial is not None,
            "partialSyncProgress": partial,
            "error": self.error,
            "currentPhase": current_phase,
            "phases": phase_list(current_phase, all_complete=finished),
            "stats": self.stats.to_dict() if self.stats is not None else None,
            "statusMessage": self.status_message,
            "apiQueryCount": self.api_query_count,
        }
