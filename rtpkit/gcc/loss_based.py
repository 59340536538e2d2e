"""Loss based bandwidth estimation."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from rtpkit.gcc.arrival_group import Acknowledgment
from rtpkit.gcc.common import MILLISECOND, clamp_int, min_int, to_milliseconds

INCREASE_LOSS_THRESHOLD = 0.02
INCREASE_TIME_THRESHOLD = 200 * MILLISECOND
INCREASE_FACTOR = 1.05

DECREASE_LOSS_THRESHOLD = 0.1
DECREASE_TIME_THRESHOLD = 200 * MILLISECOND

_log = logging.getLogger("gcc_loss_controller")


@dataclass
class LossStats:
    """Internal statistics of the loss based controller."""

    target_bitrate: int = 0
    average_loss: float = 0.0


class LossBasedBandwidthEstimator:
    """Raises the bitrate while loss is low and cuts it when loss is high.

    ``clock`` returns the current time in nanoseconds.
    """

    def __init__(self, initial_bitrate: int, clock: Callable[[], int] = time.monotonic_ns) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self.max_bitrate = 100_000_000
        self.min_bitrate = 100_000
        self.bitrate = initial_bitrate
        self.average_loss = 0.0
        self._last_loss_update: int | None = None
        self._last_increase: int | None = None
        self._last_decrease: int | None = None

    def get_estimate(self, wanted_rate: int) -> LossStats:
        """Return the loss based target, never above ``wanted_rate``."""
        with self._lock:
            if self.bitrate <= 0:
                self.bitrate = clamp_int(wanted_rate, self.min_bitrate, self.max_bitrate)
            self.bitrate = min_int(wanted_rate, self.bitrate)
            return LossStats(target_bitrate=self.bitrate, average_loss=self.average_loss)

    def update_loss_estimate(self, results: Sequence[Acknowledgment]) -> None:
        """Update the loss average from feedback; unset arrival means lost."""
        if not results:
            return
        packets_lost = sum(1 for ack in results if ack.arrival == 0)

        with self._lock:
            now = self._clock()
            loss_ratio = packets_lost / len(results)
            self.average_loss = self._average(
                self._since(self._last_loss_update, now), self.average_loss, loss_ratio
            )
            self._last_loss_update = now

            increase_loss = max(self.average_loss, loss_ratio)
            decrease_loss = min(self.average_loss, loss_ratio)

            if (
                increase_loss < INCREASE_LOSS_THRESHOLD
                and self._since(self._last_increase, now) > INCREASE_TIME_THRESHOLD
            ):
                _log.info(
                    "loss controller increasing; averageLoss: %s, decreaseLoss: %s, increaseLoss: %s",
                    self.average_loss,
                    decrease_loss,
                    increase_loss,
                )
                self._last_increase = now
                self.bitrate = clamp_int(
                    int(INCREASE_FACTOR * float(self.bitrate)), self.min_bitrate, self.max_bitrate
                )
            elif (
                decrease_loss > DECREASE_LOSS_THRESHOLD
                and self._since(self._last_decrease, now) > DECREASE_TIME_THRESHOLD
            ):
                _log.info(
                    "loss controller decreasing; averageLoss: %s, decreaseLoss: %s, increaseLoss: %s",
                    self.average_loss,
                    decrease_loss,
                    increase_loss,
                )
                self._last_decrease = now
                self.bitrate = clamp_int(
                    int(float(self.bitrate) * (1 - 0.5 * decrease_loss)),
                    self.min_bitrate,
                    self.max_bitrate,
                )

    def set_target_bitrate(self, rate: int) -> None:
        """Override the current bitrate."""
        with self._lock:
            self.bitrate = rate

    @staticmethod
    def _since(moment: int | None, now: int) -> float:
        return math.inf if moment is None else float(now - moment)

    @staticmethod
    def _average(delta: float, prev: float, sample: float) -> float:
        delta_ms = delta if math.isinf(delta) else float(to_milliseconds(int(delta)))
        return sample + math.exp(-delta_ms / 200.0) * (prev - sample)