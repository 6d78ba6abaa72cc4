"""Tests for the observer state machine."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from syncwatch.client.reducer import (
    STALE_POLL_LIMIT,
    Effect,
    ErrorMessageExpired,
    ObservedState,
    RefreshAccepted,
    RefreshRejected,
    RefreshRequested,
    RejectionCause,
    SnapshotReceived,
    is_relevant,
    reduce,
    scope_snapshot,
)
from syncwatch.client.snapshot import PartialSyncProgress, StatusSnapshot
from syncwatch.core.types import SyncState

LAST_SYNC = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
LATER_SYNC = datetime(2025, 1, 1, 10, 5, tzinfo=timezone.utc)

IDLE_NEVER = StatusSnapshot(status=SyncState.IDLE)
IDLE_DONE = StatusSnapshot(status=SyncState.IDLE, last_sync_time=LAST_SYNC)
IDLE_LATER = StatusSnapshot(status=SyncState.IDLE, last_sync_time=LATER_SYNC)
SYNCING = StatusSnapshot(status=SyncState.SYNCING, is_running=True, progress_percent=40)
FAILED = StatusSnapshot(status=SyncState.ERROR, error="upstream timed out")

ALL_STATES = [
    ObservedState(),
    ObservedState(sync_status=SyncState.SYNCING, is_running=True, was_syncing=True),
    ObservedState(sync_status=SyncState.ERROR, error_message="boom", server_error="boom"),
    ObservedState(sync_status=SyncState.SYNCING, is_refreshing=True, was_syncing=True),
]


def polled(state: ObservedState, snapshot: StatusSnapshot, scope: str | None = None):  # type: ignore[no-untyped-def]
    return reduce(state, scope_snapshot(snapshot, scope))


class TestRelevance:
    """Tests for the relevance filter."""

    def test_global_observer_always_relevant(self) -> None:
        snapshot = StatusSnapshot(status=SyncState.SYNCING, syncing_project_id="proj-b")
        assert is_relevant(snapshot, None)

    def test_scoped_observer_own_project(self) -> None:
        snapshot = StatusSnapshot(status=SyncState.SYNCING, syncing_project_id="proj-a")
        assert is_relevant(snapshot, "proj-a")

    def test_scoped_observer_full_sync(self) -> None:
        """A full sync (no project id) affects every project."""
        assert is_relevant(StatusSnapshot(status=SyncState.SYNCING), "proj-a")

    def test_scoped_observer_other_project(self) -> None:
        snapshot = StatusSnapshot(status=SyncState.SYNCING, syncing_project_id="proj-b")
        assert not is_relevant(snapshot, "proj-a")

    def test_scope_snapshot_normalizes_other_project(self) -> None:
        snapshot = StatusSnapshot(
            status=SyncState.SYNCING, is_running=True, syncing_project_id="proj-b"
        )
        event = scope_snapshot(snapshot, "proj-a")
        assert event.relevant is False
        assert event.snapshot.status == SyncState.IDLE
        assert event.snapshot.is_running is False

    @pytest.mark.parametrize("state", [s for s in ALL_STATES if not s.is_refreshing])
    def test_other_project_never_syncing(self, state: ObservedState) -> None:
        """A scoped observer never reports another project's job as its own."""
        snapshot = StatusSnapshot(
            status=SyncState.SYNCING,
            is_running=True,
            progress_percent=70,
            syncing_project_id="proj-b",
        )
        result = polled(state, snapshot, scope="proj-a")
        assert result.state.sync_status != SyncState.SYNCING
        assert result.state.is_running is False
        assert result.state.relevant is False


class TestPolledTransitions:
    """Tests for transitions driven by polled snapshots."""

    @pytest.mark.parametrize("state", ALL_STATES)
    def test_syncing_snapshot_always_wins(self, state: ObservedState) -> None:
        """Any prior state becomes syncing on a syncing snapshot."""
        result = polled(state, SYNCING)
        assert result.state.sync_status == SyncState.SYNCING
        assert result.state.is_running is True
        assert result.state.progress_percent == 40

    def test_syncing_tracks_project_and_progress(self) -> None:
        snapshot = StatusSnapshot(
            status=SyncState.SYNCING, progress_percent=65, syncing_project_id="proj-a"
        )
        state = polled(ObservedState(), snapshot).state
        assert state.syncing_project_id == "proj-a"
        assert state.progress_percent == 65
        assert state.was_syncing is True

    def test_idle_while_running_counts_as_syncing(self) -> None:
        """A transient idle status with isRunning still shows syncing."""
        snapshot = StatusSnapshot(status=SyncState.IDLE, is_running=True)
        assert polled(ObservedState(), snapshot).state.sync_status == SyncState.SYNCING

    def test_initial_idle_does_not_reload(self) -> None:
        """Idle before any job ran is not a completion."""
        result = polled(ObservedState(), IDLE_DONE)
        assert result.state.sync_status == SyncState.IDLE
        assert Effect.RELOAD not in result.effects

    def test_completion_edge_reloads_once(self) -> None:
        """syncing -> idle with lastSyncTime reloads exactly once."""
        state = polled(ObservedState(), SYNCING).state
        first = polled(state, IDLE_DONE)
        assert first.state.sync_status == SyncState.IDLE
        assert first.effects == (Effect.RELOAD,)

        state = first.state
        for _ in range(3):
            again = polled(state, IDLE_DONE)
            assert Effect.RELOAD not in again.effects
            state = again.state

    def test_completion_without_last_sync_time(self) -> None:
        """Going idle without a completion time settles without reload."""
        state = polled(ObservedState(), SYNCING).state
        result = polled(state, IDLE_NEVER)
        assert result.state.sync_status == SyncState.IDLE
        assert result.effects == ()

    def test_each_job_reloads_once(self) -> None:
        state = ObservedState()
        reloads = 0
        for snapshot in [SYNCING, IDLE_DONE, IDLE_DONE, SYNCING, SYNCING, IDLE_DONE]:
            result = polled(state, snapshot)
            reloads += result.effects.count(Effect.RELOAD)
            state = result.state
        assert reloads == 2

    def test_error_snapshot(self) -> None:
        """A job error shows the server message and arms the auto-clear."""
        state = polled(ObservedState(), SYNCING).state
        result = polled(state, FAILED)
        assert result.state.sync_status == SyncState.ERROR
        assert result.state.error_message == "upstream timed out"
        assert result.state.is_running is False
        assert result.effects == (Effect.SCHEDULE_ERROR_CLEAR,)

    def test_error_without_message_uses_default(self) -> None:
        result = polled(ObservedState(), StatusSnapshot(status=SyncState.ERROR))
        assert result.state.error_message == "Sync failed"

    def test_repeated_error_does_not_restore_cleared_message(self) -> None:
        """After auto-clear, the same server error keeps the message cleared."""
        state = polled(ObservedState(), FAILED).state
        state = reduce(state, ErrorMessageExpired()).state
        assert state.sync_status == SyncState.ERROR
        assert state.error_message is None

        result = polled(state, FAILED)
        assert result.state.sync_status == SyncState.ERROR
        assert result.state.error_message is None
        assert result.effects == ()

    def test_new_error_text_rearms(self) -> None:
        state = polled(ObservedState(), FAILED).state
        state = reduce(state, ErrorMessageExpired()).state
        result = polled(state, StatusSnapshot(status=SyncState.ERROR, error="disk full"))
        assert result.state.error_message == "disk full"
        assert result.effects == (Effect.SCHEDULE_ERROR_CLEAR,)

    def test_error_recovers_on_idle(self) -> None:
        """Server-confirmed recovery clears the error."""
        state = polled(ObservedState(), FAILED).state
        result = polled(state, IDLE_DONE)
        assert result.state.sync_status == SyncState.IDLE
        assert result.state.error_message is None
        assert Effect.RELOAD not in result.effects

    def test_partial_sync_is_tracked(self) -> None:
        snapshot = StatusSnapshot(
            status=SyncState.ERROR,
            error="interrupted",
            has_partial_sync=True,
            partial_sync_progress=PartialSyncProgress(completed=4, total=9),
        )
        state = polled(ObservedState(), snapshot).state
        assert state.has_partial_sync is True
        assert state.partial_sync_progress == PartialSyncProgress(completed=4, total=9)


class TestLocalTransitions:
    """Tests for transitions driven by local actions."""

    def test_refresh_requested_is_optimistic(self) -> None:
        """The UI shows syncing before the server confirms."""
        result = reduce(ObservedState(), RefreshRequested())
        assert result.state.sync_status == SyncState.SYNCING
        assert result.state.is_refreshing is True
        assert result.state.progress_percent == 0
        assert result.effects == ()

    def test_refresh_requested_from_error(self) -> None:
        state = polled(ObservedState(), FAILED).state
        result = reduce(state, RefreshRequested(project_id="proj-a"))
        assert result.state.sync_status == SyncState.SYNCING
        assert result.state.syncing_project_id == "proj-a"
        assert result.state.error_message is None

    def test_refresh_requested_while_syncing_is_ignored(self) -> None:
        state = polled(ObservedState(), SYNCING).state
        assert reduce(state, RefreshRequested()).state == state

    def test_refresh_accepted(self) -> None:
        state = reduce(ObservedState(), RefreshRequested()).state
        result = reduce(state, RefreshAccepted())
        assert result.state.sync_status == SyncState.SYNCING
        assert result.state.is_refreshing is False

    def test_busy_rejection_reconciles(self) -> None:
        """409/429 keeps the state and asks for an immediate poll."""
        state = reduce(ObservedState(), RefreshRequested()).state
        result = reduce(state, RefreshRejected(RejectionCause.BUSY, "already syncing"))
        assert result.state.sync_status == SyncState.SYNCING
        assert result.state.is_refreshing is False
        assert result.state.error_message is None
        assert result.effects == (Effect.RECONCILE,)

    def test_hard_rejection_enters_error(self) -> None:
        state = reduce(ObservedState(), RefreshRequested()).state
        result = reduce(state, RefreshRejected(RejectionCause.OTHER, "Invalid admin password"))
        assert result.state.sync_status == SyncState.ERROR
        assert result.state.error_message == "Invalid admin password"
        assert result.state.is_refreshing is False
        assert result.effects == (Effect.SCHEDULE_ERROR_CLEAR,)

    def test_error_message_expiry_keeps_status(self) -> None:
        state = reduce(
            reduce(ObservedState(), RefreshRequested()).state,
            RefreshRejected(RejectionCause.OTHER, "boom"),
        ).state
        result = reduce(state, ErrorMessageExpired())
        assert result.state.sync_status == SyncState.ERROR
        assert result.state.error_message is None

    def test_stale_poll_during_pending_refresh_is_ignored(self) -> None:
        """An idle poll that raced the start request does not undo it."""
        state = reduce(ObservedState(), RefreshRequested()).state
        result = polled(state, IDLE_DONE)
        assert result.state.sync_status == SyncState.SYNCING
        assert result.state.is_refreshing is True
        assert result.effects == ()

    def test_error_poll_during_pending_refresh_is_ignored(self) -> None:
        """The previous job's error, still reported by the server, does not undo it."""
        state = polled(ObservedState(), FAILED).state
        state = reduce(state, RefreshRequested()).state
        result = polled(state, FAILED)
        assert result.state.sync_status == SyncState.SYNCING
        assert result.state.is_refreshing is True
        assert result.effects == ()

    def test_new_job_failing_with_same_error_is_shown(self) -> None:
        state = polled(ObservedState(), FAILED).state
        state = reduce(state, ErrorMessageExpired()).state
        state = reduce(state, RefreshRequested()).state
        state = reduce(state, RefreshAccepted()).state

        result = polled(state, FAILED)
        assert result.state.sync_status == SyncState.ERROR
        assert result.state.error_message == "upstream timed out"
        assert result.effects == (Effect.SCHEDULE_ERROR_CLEAR,)

    def test_unknown_event_raises(self) -> None:
        with pytest.raises(TypeError):
            reduce(ObservedState(), object())  # type: ignore[arg-type]


class TestScenarios:
    """End-to-end sequences through the reducer."""

    def test_refresh_then_complete(self) -> None:
        state = polled(ObservedState(), IDLE_NEVER).state
        assert state.sync_status == SyncState.IDLE

        state = reduce(state, RefreshRequested()).state
        assert state.sync_status == SyncState.SYNCING
        state = reduce(state, RefreshAccepted()).state

        state = polled(state, SYNCING).state
        assert state.progress_percent == 40

        result = polled(state, IDLE_DONE)
        assert result.state.sync_status == SyncState.IDLE
        assert result.effects == (Effect.RELOAD,)

    @pytest.mark.parametrize(
        "cause_message", ["Please wait 30 seconds before syncing again", "Sync already in progress"]
    )
    def test_busy_rejection_with_no_job_does_not_reload(self, cause_message: str) -> None:
        """A 409/429 followed by an idle reconcile poll is not a completion."""
        state = polled(ObservedState(), IDLE_DONE).state
        state = reduce(state, RefreshRequested()).state
        rejected = reduce(state, RefreshRejected(RejectionCause.BUSY, cause_message))
        assert rejected.effects == (Effect.RECONCILE,)

        result = polled(rejected.state, IDLE_DONE)
        assert result.state.sync_status == SyncState.IDLE
        assert Effect.RELOAD not in result.effects

    def test_busy_rejection_then_running_job_reloads(self) -> None:
        state = polled(ObservedState(), IDLE_DONE).state
        state = reduce(state, RefreshRequested()).state
        state = reduce(state, RefreshRejected(RejectionCause.BUSY, "Sync already in progress")).state
        state = polled(state, SYNCING).state

        result = polled(state, IDLE_LATER)
        assert result.effects == (Effect.RELOAD,)

    def test_stale_idle_after_accept_is_held(self) -> None:
        """An idle poll that predates the accepted job neither reloads nor flickers."""
        state = polled(ObservedState(), IDLE_DONE).state
        state = reduce(state, RefreshRequested()).state
        state = reduce(state, RefreshAccepted()).state

        stale = polled(state, IDLE_DONE)
        assert stale.state.sync_status == SyncState.SYNCING
        assert stale.state.progress_percent == 0
        assert stale.effects == ()

        state = polled(stale.state, SYNCING).state
        result = polled(state, IDLE_LATER)
        assert result.state.sync_status == SyncState.IDLE
        assert result.effects == (Effect.RELOAD,)

    def test_job_finished_between_polls_reloads(self) -> None:
        """A newer lastSyncTime proves the accepted job ran, even if never seen running."""
        state = polled(ObservedState(), IDLE_DONE).state
        state = reduce(state, RefreshRequested()).state
        state = reduce(state, RefreshAccepted()).state

        result = polled(state, IDLE_LATER)
        assert result.state.sync_status == SyncState.IDLE
        assert result.state.last_sync_time == LATER_SYNC
        assert result.effects == (Effect.RELOAD,)

    def test_first_sync_ever_finished_between_polls_reloads(self) -> None:
        state = polled(ObservedState(), IDLE_NEVER).state
        state = reduce(state, RefreshRequested()).state
        state = reduce(state, RefreshAccepted()).state
        assert polled(state, IDLE_DONE).effects == (Effect.RELOAD,)

    def test_accepted_job_that_never_shows_up_settles_idle(self) -> None:
        state = polled(ObservedState(), IDLE_DONE).state
        state = reduce(state, RefreshRequested()).state
        state = reduce(state, RefreshAccepted()).state

        for _ in range(STALE_POLL_LIMIT):
            state = polled(state, IDLE_DONE).state
            assert state.sync_status == SyncState.SYNCING

        result = polled(state, IDLE_DONE)
        assert result.state.sync_status == SyncState.IDLE
        assert result.state.awaiting_job is False
        assert result.effects == ()

    def test_snapshot_event_is_plain_data(self) -> None:
        """Events compare by value."""
        assert SnapshotReceived(SYNCING) == SnapshotReceived(SYNCING, relevant=True)
