"""Delay gradient measurement between consecutive arrival groups."""

from __future__ import annotations

from typing import Callable

from rtpkit.gcc.arrival_group import ArrivalGroup
from rtpkit.gcc.common import DelayStats


def inter_group_delay_variation(first: ArrivalGroup, second: ArrivalGroup) -> int:
    """Inter-arrival time minus inter-departure time of two groups."""
    return (second.arrival - first.arrival) - (second.departure - first.departure)


class SlopeEstimator:
    """Measures delay variation per group and smooths it with an estimator.

    ``estimator`` maps a measurement to an estimate, for example
    ``Kalman().update_estimate``.
    """

    def __init__(
        self,
        estimator: Callable[[int], int],
        on_delay_stats: Callable[[DelayStats], None],
    ) -> None:
        self._estimator = estimator
        self._on_delay_stats = on_delay_stats
        self._group: ArrivalGroup | None = None

    def on_arrival_group(self, group: ArrivalGroup) -> None:
        """Take the next arrival group and report delay statistics."""
        previous = self._group
        self._group = group
        if previous is None:
            return
        measurement = inter_group_delay_variation(previous, group)
        delta = group.arrival - previous.arrival
        self._on_delay_stats(
            DelayStats(
                measurement=measurement,
                estimate=self._estimator(measurement),
                threshold=0,
                last_receive_delta=delta,
            )
        )