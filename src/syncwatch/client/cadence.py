"""Poll scheduling for StatusPoller.

This module provides:
- ExponentialBackoff: Delay growth after consecutive poll failures
- CadenceController: Owns the single poll timer of one poller and picks
  its interval from the observed phase
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from syncwatch.core.types import SyncState

logger = logging.getLogger(__name__)

# Default cadence
DEFAULT_SYNCING_INTERVAL = 1.0  # seconds
DEFAULT_IDLE_INTERVAL = 5.0  # seconds

# Default backoff configuration
DEFAULT_INITIAL_BACKOFF = 2.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


class ExponentialBackoff:
    """Track consecutive failures and derive a retry delay."""

    def __init__(
        self,
        initial_delay: float = DEFAULT_INITIAL_BACKOFF,
        max_delay: float = DEFAULT_MAX_BACKOFF,
        multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    ) -> None:
        self._initial_delay = initial_delay
        self._max_delay = max_delay
        self._multiplier = multiplier
        self._failures = 0

    @property
    def failures(self) -> int:
        """Number of consecutive failures."""
        return self._failures

    @property
    def delay(self) -> float:
        """Delay before the next retry."""
        if self._failures == 0:
            return self._initial_delay
        delay = self._initial_delay * self._multiplier ** (self._failures - 1)
        return min(delay, self._max_delay)

    def record_failure(self) -> float:
        """Record a failure and return the delay for the next retry."""
        self._failures += 1
        return self.delay

    def record_success(self) -> None:
        """Reset after a successful request."""
        self._failures = 0


class CadenceController:
    """Single-timer scheduler for one poller.

    The controller holds at most one armed asyncio timer. Every change of
    interval cancels the current timer and arms a new one in the same
    synchronous step, so two timers never coexist and a cancelled timer
    never fires. Each tick re-arms the next one before invoking the
    callback, keeping the cadence independent of request latency.

    Usage:
        cadence = CadenceController(poller.tick)
        cadence.start()                       # First tick right away
        cadence.set_phase(SyncState.SYNCING)  # Faster ticks
        cadence.cancel()                      # On teardown
    """

    def __init__(
        self,
        on_tick: Callable[[], None],
        syncing_interval: float = DEFAULT_SYNCING_INTERVAL,
        idle_interval: float = DEFAULT_IDLE_INTERVAL,
        backoff: ExponentialBackoff | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            on_tick: Called on every tick, on the event loop.
            syncing_interval: Seconds between ticks while syncing.
            idle_interval: Seconds between ticks while idle or in error.
            backoff: Backoff policy applied after failures.
            loop: Event loop to schedule on (default: the running loop).
        """
        self._on_tick = on_tick
        self._syncing_interval = syncing_interval
        self._idle_interval = idle_interval
        self._backoff = backoff or ExponentialBackoff()
        self._loop = loop

        self._phase = SyncState.IDLE
        self._handle: asyncio.TimerHandle | None = None
        self._delay: float | None = None
        self._stopped = False

    @property
    def phase(self) -> SyncState:
        return self._phase

    @property
    def armed(self) -> bool:
        """Whether a tick is currently scheduled."""
        return self._handle is not None and not self._handle.cancelled()

    @property
    def current_delay(self) -> float | None:
        """Delay the armed timer was scheduled with."""
        return self._delay if self.armed else None

    @property
    def in_backoff(self) -> bool:
        return self._backoff.failures > 0

    def interval_for(self, phase: SyncState) -> float:
        """Poll interval for a phase."""
        if phase == SyncState.SYNCING:
            return self._syncing_interval
        return self._idle_interval

    @property
    def interval(self) -> float:
        """Interval currently in force, including backoff."""
        if self.in_backoff:
            return max(self._backoff.delay, self.interval_for(self._phase))
        return self.interval_for(self._phase)

    def start(self, initial_delay: float = 0.0) -> None:
        """Arm the first tick."""
        self._stopped = False
        self._arm(initial_delay)

    def set_phase(self, phase: SyncState) -> None:
        """Adopt the cadence of a phase.

        Re-arms the timer only when the interval actually changes.
        """
        previous = self.interval
        self._phase = phase
        if self._stopped or not self.armed:
            return
        if self.interval != previous:
            logger.debug(f"Cadence now {self.interval:.1f}s ({phase.value})")
            self._arm(self.interval)

    def record_failure(self) -> None:
        """Back off after a failed poll."""
        delay = self._backoff.record_failure()
        logger.debug(f"Poll failed {self._backoff.failures}x, next poll in {delay:.1f}s")
        if not self._stopped:
            self._arm(self.interval)

    def record_success(self) -> None:
        """Return to the phase cadence after a backoff."""
        if not self.in_backoff:
            return
        self._backoff.record_success()
        if not self._stopped:
            self._arm(self.interval)

    def cancel(self) -> None:
        """Cancel the armed timer; no tick fires afterwards."""
        self._stopped = True
        self._disarm()

    def _disarm(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self._delay = None

    def _arm(self, delay: float) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._disarm()
        self._delay = delay
        self._handle = loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if self._stopped:
            return
        self._arm(self.interval)
        self._on_tick()
