"""Receive rate over a sliding window of acknowledged packets."""

from __future__ import annotations

from collections import deque
from typing import Callable, Iterable

from rtpkit.gcc.arrival_group import Acknowledgment
from rtpkit.gcc.common import SECOND


def _seconds(duration: int) -> float:
    whole = abs(duration) // SECOND
    rest = abs(duration) % SECOND
    value = float(whole) + float(rest) / 1e9
    return value if duration >= 0 else -value


class RateCalculator:
    """Computes the received bitrate over a window (nanoseconds)."""

    def __init__(self, window: int) -> None:
        self.window = window

    def run(
        self,
        batches: Iterable[Iterable[Acknowledgment]],
        on_rate_update: Callable[[int], None],
    ) -> None:
        """Consume batches of acknowledgments, reporting a rate per arrived packet."""
        history: deque[Acknowledgment] = deque()
        started = False
        total = 0
        for acks in batches:
            for ack in acks:
                if ack.arrival == 0:
                    continue
                history.append(ack)
                total += ack.size

                if not started:
                    started = True
                    # Only the last arrival is known, so no time frame yet.
                    on_rate_update(ack.size * 8)
                    continue

                deadline = ack.arrival - self.window
                while history and history[0].arrival < deadline:
                    total -= history.popleft().size
                if not history:
                    on_rate_update(0)
                    continue
                dt = ack.arrival - history[0].arrival
                if dt == 0:
                    # No time has passed within the window; no rate is defined.
                    continue
                on_rate_update(int(float(8 * total) / _seconds(dt)))