"""State machine for one observer of the sync job.

This module provides:
- ObservedState: What one observer currently believes about the job
- Events: SnapshotReceived, RefreshRequested, RefreshAccepted,
  RefreshRejected, ErrorMessageExpired
- reduce: Pure transition function returning the next state and the
  side effects the caller must run

State machine:
    idle ──refresh-requested──► syncing (optimistic)
    any ──polled syncing──► syncing
    syncing ──polled idle + lastSyncTime──► idle (+ RELOAD, once)
    optimistic ──polled idle, no newer lastSyncTime──► optimistic (held)
    any ──polled error──► error (+ SCHEDULE_ERROR_CLEAR)
    error ──polled idle──► idle
    syncing ──refresh-rejected(busy)──► syncing (+ RECONCILE)
    syncing ──refresh-rejected(other)──► error (+ SCHEDULE_ERROR_CLEAR)

A completion is counted only for a job this observer actually saw: either
a polled syncing snapshot preceded the idle one, or the idle snapshot
carries a lastSyncTime later than the one known when the refresh was
requested. A busy rejection drops the optimistic claim, so the reconcile
poll that follows it never counts as a completion on its own.

While the start request is pending, idle and error snapshots are ignored:
the server keeps the previous job's outcome until the new job starts, so
such a poll describes the old job.

The reducer owns no timers and performs no I/O; StatusPoller executes the
returned effects.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Union

from syncwatch.client.snapshot import PartialSyncProgress, StatusSnapshot
from syncwatch.core.types import SyncState

DEFAULT_ERROR_MESSAGE = "Sync failed"

# Idle polls tolerated after an accepted start before the job shows up
STALE_POLL_LIMIT = 3


class RejectionCause(Enum):
    """Why the server refused to start a job."""

    BUSY = auto()  # 409 already running or 429 rate limited
    OTHER = auto()  # Anything else


class Effect(Enum):
    """Side effects requested by a transition."""

    RELOAD = auto()  # Fresh data is available, reload the dependent view
    RECONCILE = auto()  # Poll immediately, out of band
    SCHEDULE_ERROR_CLEAR = auto()  # Arm the error message auto-clear


@dataclass(frozen=True)
class SnapshotReceived:
    """A poll returned a snapshot (already normalized for relevance)."""

    snapshot: StatusSnapshot
    relevant: bool = True


@dataclass(frozen=True)
class RefreshRequested:
    """The user asked for a new sync."""

    project_id: str | None = None


@dataclass(frozen=True)
class RefreshAccepted:
    """The server accepted the start request."""


@dataclass(frozen=True)
class RefreshRejected:
    """The server (or the network) refused the start request."""

    cause: RejectionCause
    message: str = DEFAULT_ERROR_MESSAGE


@dataclass(frozen=True)
class ErrorMessageExpired:
    """The error message auto-clear delay elapsed."""


Event = Union[
    SnapshotReceived,
    RefreshRequested,
    RefreshAccepted,
    RefreshRejected,
    ErrorMessageExpired,
]


@dataclass(frozen=True)
class ObservedState:
    """One observer's belief about the sync job.

    Attributes:
        sync_status: The observer's own phase; may lead the server during
            an optimistic refresh.
        is_running: Job actively executing (always False when not relevant).
        is_refreshing: A locally started refresh has not resolved yet.
        progress_percent: Latest polled progress, the animator's target.
        syncing_project_id: Project the running job is scoped to.
        last_sync_time: Completion time of the latest successful sync.
        error_message: Advisory text shown while in error, auto-expiring.
        relevant: Whether the running job concerns this observer.
        was_syncing: The last polled snapshot showed the job running; used
            to detect the completion edge.
        awaiting_job: A locally started job has not been polled yet.
        refresh_baseline: last_sync_time when that job was requested.
        stale_polls: Idle polls held back while awaiting the job.
        has_partial_sync: An interrupted job left resumable state.
        partial_sync_progress: Units completed vs. total of that state.
        status_message: Human-readable description of the current step.
        server_error: Last error text reported by the server, used to tell
            a new error from a repeated one.
    """

    sync_status: SyncState = SyncState.IDLE
    is_running: bool = False
    is_refreshing: bool = False
    progress_percent: int | None = None
    syncing_project_id: str | None = None
    last_sync_time: datetime | None = None
    error_message: str | None = None
    relevant: bool = True
    was_syncing: bool = False
    awaiting_job: bool = False
    refresh_baseline: datetime | None = None
    stale_polls: int = 0
    has_partial_sync: bool = False
    partial_sync_progress: PartialSyncProgress | None = None
    status_message: str | None = None
    server_error: str | None = None


@dataclass(frozen=True)
class Transition:
    """Result of reducing one event."""

    state: ObservedState
    effects: tuple[Effect, ...] = ()


def is_relevant(snapshot: StatusSnapshot, scope: str | None) -> bool:
    """Check whether the running job concerns an observer.

    Global observers (no scope) always care. Scoped observers care about
    their own project and about full syncs (no syncing project id).
    """
    if scope is None:
        return True
    return snapshot.syncing_project_id is None or snapshot.syncing_project_id == scope


def scope_snapshot(snapshot: StatusSnapshot, scope: str | None) -> SnapshotReceived:
    """Build the event for a polled snapshot, hiding jobs of other scopes."""
    if is_relevant(snapshot, scope):
        return SnapshotReceived(snapshot=snapshot, relevant=True)
    return SnapshotReceived(snapshot=snapshot.idle(), relevant=False)


def reduce(state: ObservedState, event: Event) -> Transition:
    """Compute the next observed state.

    Args:
        state: Current state.
        event: Polled snapshot or local action.

    Returns:
        Next state plus the effects to execute.
    """
    if isinstance(event, SnapshotReceived):
        return _on_snapshot(state, event)

    if isinstance(event, RefreshRequested):
        if state.is_refreshing or state.sync_status == SyncState.SYNCING:
            return Transition(state)
        return Transition(
            replace(
                state,
                sync_status=SyncState.SYNCING,
                is_running=True,
                is_refreshing=True,
                progress_percent=0,
                syncing_project_id=event.project_id,
                error_message=None,
                awaiting_job=True,
                refresh_baseline=state.last_sync_time,
                stale_polls=0,
                has_partial_sync=False,
                partial_sync_progress=None,
                status_message="Starting sync...",
                server_error=None,
            )
        )

    if isinstance(event, RefreshAccepted):
        return Transition(replace(state, is_refreshing=False, error_message=None))

    if isinstance(event, RefreshRejected):
        if event.cause is RejectionCause.BUSY:
            # Our job never started; only a polled one may complete now
            return Transition(
                replace(state, is_refreshing=False, awaiting_job=False),
                (Effect.RECONCILE,),
            )
        return Transition(
            replace(
                state,
                sync_status=SyncState.ERROR,
                is_running=False,
                is_refreshing=False,
                progress_percent=None,
                error_message=event.message or DEFAULT_ERROR_MESSAGE,
                was_syncing=False,
                awaiting_job=False,
                status_message=None,
            ),
            (Effect.SCHEDULE_ERROR_CLEAR,),
        )

    if isinstance(event, ErrorMessageExpired):
        if state.error_message is None:
            return Transition(state)
        return Transition(replace(state, error_message=None))

    raise TypeError(f"Unknown event: {event!r}")


def _on_snapshot(state: ObservedState, event: SnapshotReceived) -> Transition:
    snapshot = event.snapshot
    base = replace(
        state,
        relevant=event.relevant,
        last_sync_time=snapshot.last_sync_time or state.last_sync_time,
        has_partial_sync=snapshot.has_partial_sync,
        partial_sync_progress=snapshot.partial_sync_progress,
        status_message=snapshot.status_message,
    )

    if snapshot.is_active:
        return Transition(
            replace(
                base,
                sync_status=SyncState.SYNCING,
                is_running=True,
                progress_percent=snapshot.progress_percent,
                syncing_project_id=snapshot.syncing_project_id,
                error_message=None,
                was_syncing=True,
                awaiting_job=False,
                stale_polls=0,
                server_error=None,
            )
        )

    if state.is_refreshing:
        # Start request still pending: a poll that raced it predates the job
        return Transition(replace(state, relevant=event.relevant))

    if snapshot.status == SyncState.ERROR:
        message = snapshot.error or DEFAULT_ERROR_MESSAGE
        repeated = state.sync_status == SyncState.ERROR and state.server_error == message
        next_state = replace(
            base,
            sync_status=SyncState.ERROR,
            is_running=False,
            progress_percent=None,
            syncing_project_id=None,
            was_syncing=False,
            awaiting_job=False,
            stale_polls=0,
            server_error=message,
            error_message=state.error_message if repeated else message,
        )
        if repeated:
            return Transition(next_state)
        return Transition(next_state, (Effect.SCHEDULE_ERROR_CLEAR,))

    # Idle and not running
    finished_at = snapshot.last_sync_time
    completed = finished_at is not None and (
        state.was_syncing
        or (
            state.awaiting_job
            and (state.refresh_baseline is None or finished_at > state.refresh_baseline)
        )
    )
    if not completed and state.awaiting_job and state.stale_polls < STALE_POLL_LIMIT:
        # Accepted job not visible yet: keep showing it as starting
        return Transition(
            replace(state, relevant=event.relevant, stale_polls=state.stale_polls + 1)
        )

    next_state = replace(
        base,
        sync_status=SyncState.IDLE,
        is_running=False,
        progress_percent=None,
        syncing_project_id=None,
        error_message=None,
        was_syncing=False,
        awaiting_job=False,
        stale_polls=0,
        server_error=None,
    )
    if completed:
        return Transition(next_state, (Effect.RELOAD,))
    return Transition(next_state)
