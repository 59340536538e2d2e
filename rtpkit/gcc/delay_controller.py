"""Delay based bandwidth estimation pipeline."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Iterator, Sequence

from rtpkit.gcc.adaptive_threshold import AdaptiveThreshold
from rtpkit.gcc.arrival_group import Acknowledgment, ArrivalGroupAccumulator
from rtpkit.gcc.common import MILLISECOND, DelayStats
from rtpkit.gcc.kalman import Kalman
from rtpkit.gcc.overuse_detector import OveruseDetector
from rtpkit.gcc.rate_calculator import RateCalculator
from rtpkit.gcc.rate_controller import RateController
from rtpkit.gcc.slope_estimator import SlopeEstimator

_log = logging.getLogger("gcc_delay_controller")
_CLOSED = object()


def _drain(source: "queue.Queue[object]") -> Iterator[Sequence[Acknowledgment]]:
    while True:
        item = source.get()
        if item is _CLOSED:
            return
        yield item  # type: ignore[misc]


class DelayController:
    """Feeds acknowledgments through grouping, filtering, detection and rate control.

    Two worker threads process the feedback; ``close`` waits for both.
    """

    def __init__(
        self,
        initial_bitrate: int,
        min_bitrate: int,
        max_bitrate: int,
        now: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self._ack_queue: queue.Queue[object] = queue.Queue()
        self._rate_queue: queue.Queue[object] = queue.Queue()
        self._callback: Callable[[DelayStats], None] | None = None
        self._closed = False
        self._close_lock = threading.Lock()

        self.rate_controller = RateController(now, initial_bitrate, min_bitrate, max_bitrate, self._emit)
        detector = OveruseDetector(AdaptiveThreshold(), 10 * MILLISECOND, self.rate_controller.on_delay_stats)
        slope = SlopeEstimator(Kalman().update_estimate, detector.on_delay_stats)
        accumulator = ArrivalGroupAccumulator()
        calculator = RateCalculator(500 * MILLISECOND)

        self._workers = [
            threading.Thread(
                target=accumulator.run,
                args=(_drain(self._ack_queue), slope.on_arrival_group),
                daemon=True,
            ),
            threading.Thread(
                target=calculator.run,
                args=(_drain(self._rate_queue), self.rate_controller.on_received_rate),
                daemon=True,
            ),
        ]
        for worker in self._workers:
            worker.start()

    def _emit(self, stats: DelayStats) -> None:
        _log.info("delaystats: %s", stats)
        callback = self._callback
        if callback is not None:
            callback(stats)

    def on_update(self, callback: Callable[[DelayStats], None]) -> None:
        """Set the function called with every new delay statistic."""
        self._callback = callback

    def update_delay_estimate(self, acks: Sequence[Acknowledgment]) -> None:
        """Hand a batch of acknowledgments to the pipeline."""
        with self._close_lock:
            if self._closed:
                raise RuntimeError("delay controller is closed")
            batch = list(acks)
            self._ack_queue.put(batch)
            self._rate_queue.put(batch)

    def update_rtt(self, rtt: int) -> None:
        """Record the latest round trip time (nanoseconds)."""
        self.rate_controller.update_rtt(rtt)

    def set_target_bitrate(self, rate: int) -> None:
        """Override the delay based target bitrate."""
        self.rate_controller.set_target_bitrate(rate)

    def close(self) -> None:
        """Stop the workers after all queued feedback has been processed."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._ack_queue.put(_CLOSED)
            self._rate_queue.put(_CLOSED)
        for worker in self._workers:
            worker.join()

    def __enter__(self) -> "DelayController":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()