"""Smooth display of polled sync progress.

Polls arrive seconds apart; ProgressAnimator turns those discrete readings
into a continuous value that eases toward each new reading over a fixed
duration. Sampling is pull-based: callers ask for value() whenever they
render, so no timer is involved.
"""

from __future__ import annotations

import time
from collections.abc import Callable

DEFAULT_DURATION = 0.6  # seconds


def ease_out_cubic(t: float) -> float:
    """Monotone easing on [0, 1] with f(0) = 0 and f(1) = 1."""
    t = min(max(t, 0.0), 1.0)
    return 1.0 - (1.0 - t) ** 3


class ProgressAnimator:
    """Interpolates a displayed percentage toward the latest target.

    Retargeting mid-animation starts from the value currently displayed,
    so the display never jumps. Between two retargets the value stays
    between its starting point and the target.
    """

    def __init__(
        self,
        duration: float = DEFAULT_DURATION,
        clock: Callable[[], float] = time.monotonic,
        easing: Callable[[float], float] = ease_out_cubic,
    ) -> None:
        """Initialize the animator at 0.

        Args:
            duration: Seconds to reach a new target.
            clock: Monotonic time source.
            easing: Monotone easing function on [0, 1].
        """
        self._duration = duration
        self._clock = clock
        self._easing = easing

        self._origin = 0.0
        self._target = 0.0
        self._started_at = clock()
        self._has_target = False

    @property
    def target(self) -> float:
        return self._target

    @property
    def origin(self) -> float:
        """Value at the last retarget."""
        return self._origin

    @property
    def has_target(self) -> bool:
        """Whether a progress reading is present (progress text is shown)."""
        return self._has_target

    def set_target(self, percent: float | None) -> None:
        """Animate toward a new reading.

        Args:
            percent: New progress in [0, 100], or None when the job reports
                no progress (target becomes 0 and no text is shown).
        """
        now = self._clock()
        target = 0.0 if percent is None else min(max(float(percent), 0.0), 100.0)
        self._has_target = percent is not None
        if target == self._target:
            return
        self._origin = self.value(now)
        self._target = target
        self._started_at = now

    def value(self, now: float | None = None) -> float:
        """Displayed value at an instant (default: now)."""
        if now is None:
            now = self._clock()
        if self._duration <= 0:
            return self._target
        t = (now - self._started_at) / self._duration
        if t >= 1.0:
            return self._target
        return self._origin + (self._target - self._origin) * self._easing(t)

    def text(self, now: float | None = None) -> str | None:
        """Progress label like "42%", or None when no reading is present."""
        if not self._has_target:
            return None
        return f"{round(self.value(now))}%"
