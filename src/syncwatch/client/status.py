"""Polling observer of the server-side sync job.

This module provides:
- StatusPoller: Timer-driven loop that fetches status snapshots and feeds
  them to the reducer, one instance per UI surface
- StatusPollerConfig: Cadence, backoff and display timings

Architecture:
    SyncStatusClient ──snapshot──► StatusPoller ──event──► reduce()
                                        │                     │
                                        ◄──state, effects─────┘
                                        ├─► CadenceController (next tick)
                                        ├─► ProgressAnimator (display value)
                                        └─► on_change / on_reload callbacks

Pollers share nothing but the client; each owns its state and timers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from syncwatch.client.api import APIError, AuthenticationError, SyncStatusClient
from syncwatch.client.cadence import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_IDLE_INTERVAL,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_SYNCING_INTERVAL,
    CadenceController,
    ExponentialBackoff,
)
from syncwatch.client.progress import DEFAULT_DURATION, ProgressAnimator
from syncwatch.client.reducer import (
    Effect,
    ErrorMessageExpired,
    Event,
    ObservedState,
    Transition,
    reduce,
    scope_snapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class StatusPollerConfig:
    """Configuration for StatusPoller.

    Attributes:
        syncing_interval: Seconds between polls while syncing.
        idle_interval: Seconds between polls while idle or in error.
        initial_backoff: First retry delay after a failed poll.
        max_backoff: Maximum retry delay.
        backoff_multiplier: Multiplier for backoff.
        error_clear_delay: Seconds before an error message auto-clears.
        animation_duration: Seconds for the progress display to reach a
            new reading.
    """

    syncing_interval: float = DEFAULT_SYNCING_INTERVAL
    idle_interval: float = DEFAULT_IDLE_INTERVAL
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    error_clear_delay: float = 5.0
    animation_duration: float = DEFAULT_DURATION


class StatusPoller:
    """Observer of the sync job for one UI surface.

    Runs on the caller's event loop. At most one status request is in
    flight; ticks that elapse while it is pending are skipped. After
    stop() no state changes happen, even if a request resolves later.

    Usage:
        poller = StatusPoller(client, project_id="proj-1")
        poller.set_callbacks(on_change=render, on_reload=reload_table)
        poller.start()
        ...
        poller.stop()
    """

    def __init__(
        self,
        client: SyncStatusClient,
        project_id: str | None = None,
        config: StatusPollerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the poller.

        Args:
            client: HTTP client used for status requests.
            project_id: Scope of this observer; None observes every job.
            config: Poller configuration (cadence, backoff, timings).
            clock: Monotonic time source for the progress animation.
        """
        self._client = client
        self._project_id = project_id
        self._config = config or StatusPollerConfig()

        self._state = ObservedState()
        self._animator = ProgressAnimator(self._config.animation_duration, clock=clock)
        self._cadence = CadenceController(
            self._tick,
            syncing_interval=self._config.syncing_interval,
            idle_interval=self._config.idle_interval,
            backoff=ExponentialBackoff(
                initial_delay=self._config.initial_backoff,
                max_delay=self._config.max_backoff,
                multiplier=self._config.backoff_multiplier,
            ),
        )

        # Request state
        self._inflight: asyncio.Task[None] | None = None
        self._reconcile_pending = False
        self._error_clear: asyncio.TimerHandle | None = None

        # Lifecycle
        self._running = False
        self._closed = False

        # Callbacks
        self._on_change: Callable[[ObservedState], None] | None = None
        self._on_reload: Callable[[], None] | None = None

    @property
    def project_id(self) -> str | None:
        return self._project_id

    @property
    def state(self) -> ObservedState:
        """Current observed state."""
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def closed(self) -> bool:
        """Whether stop() was called."""
        return self._closed

    @property
    def request_pending(self) -> bool:
        return self._inflight is not None

    @property
    def cadence(self) -> CadenceController:
        return self._cadence

    @property
    def display_progress(self) -> float:
        """Animated progress value, sampled now."""
        return self._animator.value()

    @property
    def progress_text(self) -> str | None:
        """Progress label, or None when the job reports no progress."""
        return self._animator.text()

    def set_callbacks(
        self,
        on_change: Callable[[ObservedState], None] | None = None,
        on_reload: Callable[[], None] | None = None,
    ) -> None:
        """Set state callbacks.

        Args:
            on_change: Called with the new state after every transition.
            on_reload: Called once each time a job completes.
        """
        self._on_change = on_change
        self._on_reload = on_reload

    def start(self) -> None:
        """Start polling on the running event loop; the first poll is immediate."""
        if self._closed:
            logger.warning("StatusPoller already stopped, cannot restart")
            return
        if self._running:
            logger.warning("StatusPoller already running")
            return
        self._running = True
        self._cadence.start()
        logger.info(f"StatusPoller started ({self._scope_label})")

    def stop(self) -> None:
        """Tear down: cancel timers and discard any pending request."""
        if self._closed:
            return
        self._closed = True
        self._running = False
        self._cadence.cancel()
        self._cancel_error_clear()
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None
        logger.info(f"StatusPoller stopped ({self._scope_label})")

    def dispatch(self, event: Event) -> Transition | None:
        """Apply an event to the state and run the resulting effects.

        Args:
            event: Polled snapshot or local action.

        Returns:
            The transition, or None if the poller is stopped.
        """
        if self._closed:
            return None

        transition = reduce(self._state, event)
        self._state = transition.state
        self._animator.set_target(self._state.progress_percent)
        self._cadence.set_phase(self._state.sync_status)

        for effect in transition.effects:
            self._run_effect(effect)

        if self._on_change:
            self._on_change(self._state)
        return transition

    def poll_now(self) -> None:
        """Poll immediately, outside the cadence.

        If a request is already pending, another one is issued as soon as
        it resolves.
        """
        if self._closed:
            return
        if self._inflight is not None:
            self._reconcile_pending = True
            return
        self._launch()

    @property
    def _scope_label(self) -> str:
        return f"project {self._project_id}" if self._project_id else "global"

    def _tick(self) -> None:
        if self._closed:
            return
        if self._inflight is not None:
            logger.debug(f"Previous status request still pending, skipping tick ({self._scope_label})")
            return
        self._launch()

    def _launch(self) -> None:
        self._inflight = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        try:
            await self._fetch_and_apply()
        finally:
            # Whatever happened, this request is over
            self._inflight = None
            if self._reconcile_pending and not self._closed:
                self._reconcile_pending = False
                self.poll_now()

    async def _fetch_and_apply(self) -> None:
        try:
            snapshot = await self._client.get_status()
        except AuthenticationError as e:
            if not self._closed:
                logger.warning(f"Status polling stopped, not authenticated: {e}")
                self._running = False
                self._reconcile_pending = False
                self._cadence.cancel()
            return
        except (APIError, httpx.HTTPError, ValueError) as e:
            if not self._closed:
                logger.debug(f"Status poll failed ({self._scope_label}): {e}")
                self._cadence.record_failure()
            return
        except Exception as e:
            # Unexpected errors - log with traceback for debugging
            if not self._closed:
                logger.warning(f"Status poll error ({self._scope_label}): {e}")
                logger.debug("Full traceback:", exc_info=True)
                self._cadence.record_failure()
            return

        if self._closed:
            logger.debug("Discarding status received after stop")
            return

        self._cadence.record_success()
        try:
            self.dispatch(scope_snapshot(snapshot, self._project_id))
        except Exception as e:
            logger.warning(f"StatusPoller callback error ({self._scope_label}): {e}")
            logger.debug("Full traceback:", exc_info=True)

    def _run_effect(self, effect: Effect) -> None:
        if effect is Effect.RELOAD:
            logger.info(f"Sync completed, reloading data ({self._scope_label})")
            if self._on_reload:
                self._on_reload()
        elif effect is Effect.RECONCILE:
            logger.debug(f"Reconciling with server status ({self._scope_label})")
            self.poll_now()
        elif effect is Effect.SCHEDULE_ERROR_CLEAR:
            self._cancel_error_clear()
            self._error_clear = asyncio.get_running_loop().call_later(
                self._config.error_clear_delay, self._expire_error
            )

    def _expire_error(self) -> None:
        self._error_clear = None
        self.dispatch(ErrorMessageExpired())

    def _cancel_error_clear(self) -> None:
        if self._error_clear is not None:
            self._error_clear.cancel()
            self._error_clear = None
