"""User-initiated sync starts.

RefreshInitiator is the only component that writes to the server-side job:
it sends one start request and reports the outcome to its poller, which
owns the observed state.
"""

from __future__ import annotations

import logging
from enum import Enum

import httpx

from syncwatch.client.api import (
    APIError,
    ConflictError,
    RateLimitError,
    SyncStatusClient,
)
from syncwatch.client.reducer import (
    RefreshAccepted,
    RefreshRejected,
    RefreshRequested,
    RejectionCause,
)
from syncwatch.client.status import StatusPoller
from syncwatch.core.types import SyncState

logger = logging.getLogger(__name__)


class RefreshOutcome(str, Enum):
    """Result of request_refresh()."""

    SKIPPED = "skipped"  # Already refreshing or syncing, nothing sent
    ACCEPTED = "accepted"
    BUSY = "busy"  # 409/429, reconciled with a status poll
    FAILED = "failed"


class RefreshInitiator:
    """Starts sync jobs on behalf of one observer.

    A poller scoped to a project starts project syncs; a global poller
    starts full syncs.
    """

    def __init__(self, client: SyncStatusClient, poller: StatusPoller) -> None:
        self._client = client
        self._poller = poller

    async def request_refresh(self) -> RefreshOutcome:
        """Start a sync unless one is already underway.

        The observed state switches to syncing before the request is sent.
        Client-side skipping is a debounce only; the server still enforces
        exclusivity.

        Returns:
            What happened to the request.
        """
        state = self._poller.state
        if state.is_refreshing or state.sync_status == SyncState.SYNCING:
            logger.debug("Refresh ignored, sync already underway")
            return RefreshOutcome.SKIPPED

        project_id = self._poller.project_id
        self._poller.dispatch(RefreshRequested(project_id=project_id))

        try:
            await self._client.start_sync(project_id)
        except (ConflictError, RateLimitError) as e:
            logger.info(f"Sync start deferred by server: {e.message}")
            self._poller.dispatch(RefreshRejected(RejectionCause.BUSY, e.message))
            return RefreshOutcome.BUSY
        except APIError as e:
            logger.warning(f"Sync start failed ({e.status_code}): {e.message}")
            self._poller.dispatch(RefreshRejected(RejectionCause.OTHER, e.message))
            return RefreshOutcome.FAILED
        except httpx.HTTPError as e:
            message = str(e) or type(e).__name__
            logger.warning(f"Sync start failed: {message}")
            self._poller.dispatch(
                RefreshRejected(RejectionCause.OTHER, f"Network error: {message}")
            )
            return RefreshOutcome.FAILED

        self._poller.dispatch(RefreshAccepted())
        return RefreshOutcome.ACCEPTED
