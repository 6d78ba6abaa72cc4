"""Status snapshots received from the sync status endpoint.

This module provides:
- StatusSnapshot: Immutable view of the sync job at one instant
- PartialSyncProgress: Units completed by an interrupted job
- SyncPhase / SyncStats: Optional detail reported while a job runs

Parsing is lenient: absent or malformed fields fall back to defaults so a
bad response never crashes a poller.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from syncwatch.core.types import SyncState

logger = logging.getLogger(__name__)

PHASE_STATUSES = ("pending", "in_progress", "complete")


def _as_int(value: Any) -> int | None:
    """Coerce a JSON number to int, or None if it is not one."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a wire timestamp.

    Accepts epoch milliseconds (what the server emits) or an ISO-8601
    string. Naive ISO values are taken as UTC.

    Args:
        value: Raw JSON value.

    Returns:
        Aware UTC datetime, or None if absent or unparseable.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


@dataclass(frozen=True)
class PartialSyncProgress:
    """Units of work left behind by a job that stopped before finishing."""

    completed: int
    total: int

    @classmethod
    def from_dict(cls, data: Any) -> PartialSyncProgress | None:
        """Create from API data, or None if absent or unusable."""
        if not isinstance(data, dict):
            return None
        completed = _as_int(data.get("completed"))
        total = _as_int(data.get("total"))
        if completed is None or total is None or total <= 0:
            return None
        return cls(completed=max(0, min(completed, total)), total=total)


@dataclass(frozen=True)
class SyncPhase:
    """One step of a full sync (e.g. "Active Projects")."""

    phase: str
    label: str
    status: str = "pending"

    @classmethod
    def from_dict(cls, data: Any) -> SyncPhase | None:
        if not isinstance(data, dict) or not isinstance(data.get("phase"), str):
            return None
        status = data.get("status")
        return cls(
            phase=data["phase"],
            label=_as_str(data.get("label")) or data["phase"],
            status=status if status in PHASE_STATUSES else "pending",
        )


@dataclass(frozen=True)
class SyncStats:
    """Counters the server reports for a running job."""

    started_issues_count: int = 0
    total_projects_count: int = 0
    current_project_index: int = 0
    current_project_name: str | None = None
    project_issues_count: int = 0
    new_count: int = 0
    updated_count: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> SyncStats | None:
        if not isinstance(data, dict):
            return None
        return cls(
            started_issues_count=_as_int(data.get("startedIssuesCount")) or 0,
            total_projects_count=_as_int(data.get("totalProjectsCount")) or 0,
            current_project_index=_as_int(data.get("currentProjectIndex")) or 0,
            current_project_name=_as_str(data.get("currentProjectName")),
            project_issues_count=_as_int(data.get("projectIssuesCount")) or 0,
            new_count=_as_int(data.get("newCount")) or 0,
            updated_count=_as_int(data.get("updatedCount")) or 0,
        )


@dataclass(frozen=True)
class StatusSnapshot:
    """Condition of the sync job at one instant.

    Attributes:
        status: Coarse job phase.
        is_running: Job actively executing. May be true while status is
            transiently reported as idle.
        last_sync_time: Completion time of the most recent successful sync.
        progress_percent: Completion estimate of the current job (0-100).
        syncing_project_id: Project the running job is scoped to; None
            means a full sync that affects every project.
        has_partial_sync: A previous job stopped early and left
            resumable state.
        partial_sync_progress: Units completed vs. total for that state.
        error: Human-readable last error.
        current_phase: Identifier of the phase being executed.
        phases: Every phase with its pending/in_progress/complete status.
        stats: Counters for the running job.
        status_message: Human-readable description of the current step.
        api_query_count: Upstream API calls made by the job.
    """

    status: SyncState = SyncState.IDLE
    is_running: bool = False
    last_sync_time: datetime | None = None
    progress_percent: int | None = None
    syncing_project_id: str | None = None
    has_partial_sync: bool = False
    partial_sync_progress: PartialSyncProgress | None = None
    error: str | None = None
    current_phase: str | None = None
    phases: tuple[SyncPhase, ...] = ()
    stats: SyncStats | None = None
    status_message: str | None = None
    api_query_count: int | None = None

    @classmethod
    def from_dict(cls, data: Any) -> StatusSnapshot:
        """Create from a status endpoint response body.

        Args:
            data: Decoded JSON body.

        Returns:
            Parsed snapshot.

        Raises:
            ValueError: If the body is not a JSON object.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        raw_status = data.get("status")
        status = SyncState.parse(raw_status)
        if raw_status is not None and raw_status != status.value:
            logger.debug(f"Unknown sync status {raw_status!r}, treating as idle")
        progress = _as_int(data.get("progressPercent"))
        if progress is not None:
            progress = max(0, min(progress, 100))

        raw_phases = data.get("phases")
        phases: tuple[SyncPhase, ...] = ()
        if isinstance(raw_phases, list):
            parsed = (SyncPhase.from_dict(p) for p in raw_phases)
            phases = tuple(p for p in parsed if p is not None)

        return cls(
            status=status,
            # A syncing job is always running, even if the flag lags behind
            is_running=bool(data.get("isRunning")) or status == SyncState.SYNCING,
            last_sync_time=parse_timestamp(data.get("lastSyncTime")),
            progress_percent=progress,
            syncing_project_id=_as_str(data.get("syncingProjectId")),
            has_partial_sync=bool(data.get("hasPartialSync")),
            partial_sync_progress=PartialSyncProgress.from_dict(
                data.get("partialSyncProgress")
            ),
            error=_as_str(data.get("error")),
            current_phase=_as_str(data.get("currentPhase")),
            phases=phases,
            stats=SyncStats.from_dict(data.get("stats")),
            status_message=_as_str(data.get("statusMessage")),
            api_query_count=_as_int(data.get("apiQueryCount")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape (camelCase, epoch-millisecond times)."""
        partial = self.partial_sync_progress
        stats = self.stats
        return {
            "status": self.status.value,
            "isRunning": self.is_running,
            "lastSyncTime": (
                int(self.last_sync_time.timestamp() * 1000) if self.last_sync_time else None
            ),
            "progressPercent": self.progress_percent,
            "syncingProjectId": self.syncing_project_id,
            "hasPartialSync": self.has_partial_sync,
            "partialSyncProgress": (
                {"completed": partial.completed, "total": partial.total} if partial else None
            ),
            "error": self.error,
            "currentPhase": self.current_phase,
            "phases": [
                {"phase": p.phase, "label": p.label, "status": p.status} for p in self.phases
            ],
            "stats": (
                {
                    "startedIssuesCount": stats.started_issues_count,
                    "totalProjectsCount": stats.total_projects_count,
                    "currentProjectIndex": stats.current_project_index,
                    "currentProjectName": stats.current_project_name,
                    "projectIssuesCount": stats.project_issues_count,
                    "newCount": stats.new_count,
                    "updatedCount": stats.updated_count,
                }
                if stats
                else None
            ),
            "statusMessage": self.status_message,
            "apiQueryCount": self.api_query_count,
        }

    @property
    def is_active(self) -> bool:
        """Whether the job should be treated as syncing."""
        return self.status == SyncState.SYNCING or (
            self.status == SyncState.IDLE and self.is_running
        )

    def idle(self) -> StatusSnapshot:
        """Copy of this snapshot with the running job hidden.

        Used for observers the running job does not concern.
        """
        return StatusSnapshot(
            status=SyncState.IDLE,
            is_running=False,
            last_sync_time=self.last_sync_time,
            has_partial_sync=self.has_partial_sync,
            partial_sync_progress=self.partial_sync_progress,
        )
