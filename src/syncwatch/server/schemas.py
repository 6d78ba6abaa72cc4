"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel

# === Sync status schemas ===


class PartialSyncProgressResponse(BaseModel):
    """Units completed vs. total of an interrupted job."""

    completed: int
    total: int


class SyncPhaseResponse(BaseModel):
    """One phase of a full sync and its status."""

    phase: str
    label: str
    status: str


class SyncStatsResponse(BaseModel):
    """Counters of the current job."""

    startedIssuesCount: int = 0  # noqa: N815
    totalProjectsCount: int = 0  # noqa: N815
    currentProjectIndex: int = 0  # noqa: N815
    currentProjectName: str | None = None  # noqa: N815
    projectIssuesCount: int = 0  # noqa: N815
    newCount: int = 0  # noqa: N815
    updatedCount: int = 0  # noqa: N815


class SyncStatusResponse(BaseModel):
    """Status endpoint body (camelCase wire names)."""

    status: str
    isRunning: bool  # noqa: N815
    lastSyncTime: int | None = None  # noqa: N815
    progressPercent: int | None = None  # noqa: N815
    syncingProjectId: str | None = None  # noqa: N815
    hasPartialSync: bool = False  # noqa: N815
    partialSyncProgress: PartialSyncProgressResponse | None = None  # noqa: N815
    error: str | None = None
    currentPhase: str | None = None  # noqa: N815
    phases: list[SyncPhaseResponse] = []
    stats: SyncStatsResponse | None = None
    statusMessage: str | None = None  # noqa: N815
    apiQueryCount: int | None = None  # noqa: N815


# === Sync start schemas ===


class StartSyncResponse(BaseModel):
    """Start endpoint body, for acceptance and rejection alike."""

    success: bool
    message: str
    status: str


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
