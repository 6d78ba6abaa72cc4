"""Client module - Observers of the server-side sync job."""

from syncwatch.client.api import (
    APIError,
    AuthenticationError,
    ConflictError,
    RateLimitError,
    StartResult,
    SyncStatusClient,
)
from syncwatch.client.cadence import CadenceController, ExponentialBackoff
from syncwatch.client.progress import ProgressAnimator, ease_out_cubic
from syncwatch.client.reducer import (
    Effect,
    ErrorMessageExpired,
    ObservedState,
    RefreshAccepted,
    RefreshRejected,
    RefreshRequested,
    RejectionCause,
    SnapshotReceived,
    Transition,
    is_relevant,
    reduce,
    scope_snapshot,
)
from syncwatch.client.refresh import RefreshInitiator, RefreshOutcome
from syncwatch.client.snapshot import (
    PartialSyncProgress,
    StatusSnapshot,
    SyncPhase,
    SyncStats,
)
from syncwatch.client.status import StatusPoller, StatusPollerConfig

__all__ = [
    # API
    "APIError",
    "AuthenticationError",
    "ConflictError",
    "RateLimitError",
    "StartResult",
    "SyncStatusClient",
    # Snapshot
    "PartialSyncProgress",
    "StatusSnapshot",
    "SyncPhase",
    "SyncStats",
    # Reducer
    "Effect",
    "ErrorMessageExpired",
    "ObservedState",
    "RefreshAccepted",
    "RefreshRejected",
    "RefreshRequested",
    "RejectionCause",
    "SnapshotReceived",
    "Transition",
    "is_relevant",
    "reduce",
    "scope_snapshot",
    # Scheduling and display
    "CadenceController",
    "ExponentialBackoff",
    "ProgressAnimator",
    "ease_out_cubic",
    # Observers
    "RefreshInitiator",
    "RefreshOutcome",
    "StatusPoller",
    "StatusPollerConfig",
]
