"""Shared types and helpers for the congestion controller.

Durations and points in time are integer nanoseconds.  A point in time of
``0`` stands for "no time recorded".
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

NANOSECOND = 1
MICROSECOND = 1_000 * NANOSECOND
MILLISECOND = 1_000 * MICROSECOND
SECOND = 1_000 * MILLISECOND


def _trunc_div(value: int, unit: int) -> int:
    quotient = abs(value) // unit
    return quotient if value >= 0 else -quotient


def to_microseconds(duration: int) -> int:
    """Whole microseconds in a nanosecond duration, truncated toward zero."""
    return _trunc_div(duration, MICROSECOND)


def to_milliseconds(duration: int) -> int:
    """Whole milliseconds in a nanosecond duration, truncated toward zero."""
    return _trunc_div(duration, MILLISECOND)


def min_int(a: int, b: int) -> int:
    """Return the smaller of two integers."""
    return a if a < b else b


def max_int(a: int, b: int) -> int:
    """Return the larger of two integers."""
    return a if a > b else b


def clamp_int(value: int, min_value: int, max_value: int) -> int:
    """Limit ``value`` to the range ``[min_value, max_value]``."""
    return max_int(min_value, min_int(max_value, value))


def clamp_duration(value: int, min_value: int, max_value: int) -> int:
    """Limit a nanosecond duration to ``[min_value, max_value]``."""
    return clamp_int(int(value), int(min_value), int(max_value))


class Usage(enum.IntEnum):
    """Network usage signalled by the overuse detector."""

    OVER = 0
    UNDER = 1
    NORMAL = 2

    def __str__(self) -> str:
        return {
            Usage.OVER: "overuse",
            Usage.UNDER: "underuse",
            Usage.NORMAL: "normal",
        }[self]


class State(enum.IntEnum):
    """State of the delay based rate controller."""

    INCREASE = 0
    DECREASE = 1
    HOLD = 2

    def transition(self, usage: Usage) -> "State":
        """Return the state that follows this one under ``usage``."""
        if usage is Usage.OVER:
            return State.DECREASE
        if usage is Usage.UNDER:
            return State.HOLD
        if usage is Usage.NORMAL:
            return State.HOLD if self is State.DECREASE else State.INCREASE
        return State.INCREASE

    def __str__(self) -> str:
        return {
            State.INCREASE: "increase",
            State.DECREASE: "decrease",
            State.HOLD: "hold",
        }[self]


@dataclass
class DelayStats:
    """Internal statistics of the delay based congestion controller."""

    measurement: int = 0
    estimate: int = 0
    threshold: int = 0
    last_receive_delta: int = 0
    usage: Usage = Usage.OVER
    state: State = State.INCREASE
    target_bitrate: int = 0