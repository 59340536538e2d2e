"""Threshold that adapts to the measured delay gradient."""

from __future__ import annotations

import time
from typing import Callable

from rtpkit.gcc.common import (
    MICROSECOND,
    MILLISECOND,
    Usage,
    clamp_duration,
    min_int,
    to_microseconds,
    to_milliseconds,
)

MAX_DELTAS = 60


class AdaptiveThreshold:
    """Threshold that grows quickly when estimates leave ``[-thresh, thresh]``
    and shrinks slowly while they stay inside.

    ``clock`` returns the current time in nanoseconds.
    """

    def __init__(
        self,
        initial_threshold: int = 12_500 * MICROSECOND,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self.threshold = initial_threshold
        self.overuse_coefficient_up = 0.01
        self.overuse_coefficient_down = 0.00018
        self.min_threshold = 6 * MILLISECOND
        self.max_threshold = 600 * MILLISECOND
        self._clock = clock
        self._last_update: int | None = None
        self._num_deltas = 0

    def compare(self, estimate: int, delta: int) -> tuple[Usage, int, int]:
        """Classify ``estimate``; return (usage, scaled estimate, threshold used)."""
        self._num_deltas += 1
        if self._num_deltas < 2:
            return Usage.NORMAL, estimate, self.max_threshold
        scaled = min_int(self._num_deltas, MAX_DELTAS) * estimate
        usage = Usage.NORMAL
        if scaled > self.threshold:
            usage = Usage.OVER
        elif scaled < -self.threshold:
            usage = Usage.UNDER
        threshold = self.threshold
        self._update(scaled)
        return usage, scaled, threshold

    def _update(self, estimate: int) -> None:
        now = self._clock()
        if self._last_update is None:
            self._last_update = now
        abs_estimate = abs(to_microseconds(estimate)) * MICROSECOND
        if abs_estimate > self.threshold + 15 * MILLISECOND:
            self._last_update = now
            return
        k = self.overuse_coefficient_down if abs_estimate < self.threshold else self.overuse_coefficient_up
        time_delta_ms = min_int(to_milliseconds(now - self._last_update), 100)
        d = abs_estimate - self.threshold
        add = k * float(to_milliseconds(d)) * float(time_delta_ms)
        self.threshold += int(add * 1000) * MICROSECOND
        self.threshold = clamp_duration(self.threshold, self.min_threshold, self.max_threshold)
        self._last_update = now