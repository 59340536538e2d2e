"""Detection of network overuse from smoothed delay estimates."""

from __future__ import annotations

import time
from typing import Callable, Protocol

from rtpkit.gcc.common import DelayStats, State, Usage


class Threshold(Protocol):
    """Anything that classifies a delay estimate against a threshold."""

    def compare(self, estimate: int, delta: int) -> tuple[Usage, int, int]:
        """Return (usage, estimate used, threshold used)."""


def _half(duration: int) -> int:
    half = abs(duration) // 2
    return half if duration >= 0 else -half


class OveruseDetector:
    """Signals overuse only after it has lasted longer than ``overuse_time``.

    Durations and the values returned by ``clock`` are nanoseconds.
    """

    def __init__(
        self,
        threshold: Threshold,
        overuse_time: int,
        on_delay_stats: Callable[[DelayStats], None],
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self._threshold = threshold
        self.overuse_time = overuse_time
        self._on_delay_stats = on_delay_stats
        self._clock = clock
        self._last_estimate = 0
        self._last_update = clock()
        self._increasing_duration = 0
        self._increasing_counter = 0

    def on_delay_stats(self, stats: DelayStats) -> None:
        """Classify one delay estimate and pass the result on."""
        now = self._clock()
        delta = now - self._last_update
        self._last_update = now

        threshold_use, estimate, current_threshold = self._threshold.compare(
            stats.estimate, stats.last_receive_delta
        )

        usage = Usage.NORMAL
        if threshold_use is Usage.OVER:
            if self._increasing_duration == 0:
                self._increasing_duration = _half(delta)
            else:
                self._increasing_duration += delta
            self._increasing_counter += 1
            if (
                self._increasing_duration > self.overuse_time
                and self._increasing_counter > 1
                and estimate > self._last_estimate
            ):
                usage = Usage.OVER
        elif threshold_use is Usage.UNDER:
            self._increasing_counter = 0
            self._increasing_duration = 0
            usage = Usage.UNDER
        else:
            self._increasing_counter = 0
            self._increasing_duration = 0
        self._last_estimate = estimate

        self._on_delay_stats(
            DelayStats(
                measurement=stats.measurement,
                estimate=estimate,
                threshold=current_threshold,
                last_receive_delta=stats.last_receive_delta,
                usage=usage,
                state=State.INCREASE,
                target_bitrate=0,
            )
        )