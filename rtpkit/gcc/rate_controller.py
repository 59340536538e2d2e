"""Delay based rate controller (AIMD on the target bitrate)."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, replace
from typing import Callable

from rtpkit.gcc.common import (
    MILLISECOND,
    DelayStats,
    State,
    clamp_int,
    to_milliseconds,
)

DECREASE_EMA_ALPHA = 0.95
BETA = 0.85


@dataclass
class ExponentialMovingAverage:
    """Moving average and deviation of the rates seen at decreases."""

    average: float = 0.0
    variance: float = 0.0
    std_deviation: float = 0.0

    def update(self, value: float) -> None:
        """Fold ``value`` into the average."""
        if self.average == 0.0:
            self.average = value
            return
        x = value - self.average
        self.average += DECREASE_EMA_ALPHA * x
        self.variance = (1 - DECREASE_EMA_ALPHA) * (self.variance + DECREASE_EMA_ALPHA * x * x)
        self.std_deviation = math.sqrt(self.variance)


class RateController:
    """Turns usage signals into a target bitrate.

    ``now`` returns the current time in nanoseconds.
    """

    def __init__(
        self,
        now: Callable[[], int],
        initial_target_bitrate: int,
        min_bitrate: int,
        max_bitrate: int,
        on_delay_stats: Callable[[DelayStats], None],
    ) -> None:
        self._now = now
        self.initial_target_bitrate = initial_target_bitrate
        self.min_bitrate = min_bitrate
        self.max_bitrate = max_bitrate
        self._on_delay_stats = on_delay_stats
        self._lock = threading.Lock()
        self._started = False
        self._delay_stats = DelayStats()
        self.target = initial_target_bitrate
        self._last_update: int | None = None
        self.latest_rtt = 0
        self.latest_received_rate = 0
        self.latest_decrease_rate = ExponentialMovingAverage()

    def on_received_rate(self, rate: int) -> None:
        """Record the latest measured receive rate."""
        with self._lock:
            self.latest_received_rate = rate

    def update_rtt(self, rtt: int) -> None:
        """Record the latest round trip time (nanoseconds)."""
        with self._lock:
            self.latest_rtt = rtt

    def on_delay_stats(self, stats: DelayStats) -> None:
        """React to a usage signal and report the new target bitrate."""
        now = self._now()

        if not self._started:
            self._delay_stats = replace(stats, state=State.INCREASE)
            self._started = True
            return
        self._delay_stats = replace(stats, state=stats.state.transition(stats.usage))

        if self._delay_stats.state is State.HOLD:
            return

        with self._lock:
            if self._delay_stats.state is State.INCREASE:
                self.target = clamp_int(self._increase(now), self.min_bitrate, self.max_bitrate)
            else:
                self.target = clamp_int(self._decrease(), self.min_bitrate, self.max_bitrate)
            report = replace(self._delay_stats, target_bitrate=self.target)

        self._on_delay_stats(report)

    def set_target_bitrate(self, rate: int) -> None:
        """Override the current target bitrate."""
        with self._lock:
            self.target = rate

    def _elapsed_ms(self, now: int) -> float:
        if self._last_update is None:
            return math.inf
        return float(to_milliseconds(now - self._last_update))

    def _increase(self, now: int) -> int:
        ema = self.latest_decrease_rate
        received = float(self.latest_received_rate)
        if (
            ema.average > 0
            and ema.average - 3 * ema.std_deviation < received < ema.average + 3 * ema.std_deviation
        ):
            bits_per_frame = self.target / 30.0
            packets_per_frame = math.ceil(bits_per_frame / (1200 * 8))
            expected_packet_size_bits = bits_per_frame / packets_per_frame

            response_ms = float(to_milliseconds(100 * MILLISECOND + self.latest_rtt))
            alpha = 0.5 * min(self._elapsed_ms(now) / response_ms, 1.0)
            increase = int(max(1000.0, alpha * expected_packet_size_bits))
            self._last_update = now
            return int(min(float(self.target + increase), 1.5 * received))

        eta = math.pow(1.08, min(self._elapsed_ms(now) / 1000, 1.0))
        self._last_update = now

        rate = int(eta * float(self.target))
        # Never grow beyond 1.5 times the received rate.
        received_cap = int(1.5 * received)
        if rate > received_cap > self.target:
            return received_cap
        if rate < self.target:
            return self.target
        return rate

    def _decrease(self) -> int:
        target = int(BETA * float(self.latest_received_rate))
        self.latest_decrease_rate.update(float(self.latest_received_rate))
        self._last_update = self._now()
        return target