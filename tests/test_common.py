import pytest

from rtpkit.gcc.common import (
    MICROSECOND,
    MILLISECOND,
    DelayStats,
    State,
    Usage,
    clamp_duration,
    clamp_int,
    max_int,
    min_int,
    to_microseconds,
    to_milliseconds,
)


@pytest.mark.parametrize("expected,a,b", [(0, 0, 100), (10, 10, 10), (1, 10, 1)])
def test_min_int(expected, a, b):
    assert min_int(a, b) == expected


@pytest.mark.parametrize("expected,a,b", [(100, 0, 100), (10, 10, 10), (10, 10, 1)])
def test_max_int(expected, a, b):
    assert max_int(a, b) == expected


CLAMP_CASES = [
    (50, 50, 0, 100),
    (50, 50, 50, 100),
    (100, 100, 0, 100),
    (50, 3, 50, 100),
    (100, 150, 0, 100),
]


@pytest.mark.parametrize("expected,x,lo,hi", CLAMP_CASES)
def test_clamp_int(expected, x, lo, hi):
    assert clamp_int(x, lo, hi) == expected


@pytest.mark.parametrize("expected,x,lo,hi", CLAMP_CASES)
def test_clamp_duration(expected, x, lo, hi):
    assert clamp_duration(x, lo, hi) == expected


def test_truncating_conversions():
    assert to_microseconds(1_999) == 1
    assert to_microseconds(-1_999) == -1
    assert to_milliseconds(2 * MILLISECOND + 999 * MICROSECOND) == 2
    assert to_milliseconds(-(2 * MILLISECOND + 999 * MICROSECOND)) == -2


@pytest.mark.parametrize(
    "start,usage,expected",
    [
        (State.HOLD, Usage.OVER, State.DECREASE),
        (State.HOLD, Usage.NORMAL, State.INCREASE),
        (State.HOLD, Usage.UNDER, State.HOLD),
        (State.INCREASE, Usage.OVER, State.DECREASE),
        (State.INCREASE, Usage.NORMAL, State.INCREASE),
        (State.INCREASE, Usage.UNDER, State.HOLD),
        (State.DECREASE, Usage.OVER, State.DECREASE),
        (State.DECREASE, Usage.NORMAL, State.HOLD),
        (State.DECREASE, Usage.UNDER, State.HOLD),
    ],
)
def test_state_transition(start, usage, expected):
    assert start.transition(usage) is expected


@pytest.mark.parametrize("value,name", [(0, "overuse"), (1, "underuse"), (2, "normal")])
def test_usage_names(value, name):
    assert str(Usage(value)) == name


@pytest.mark.parametrize("value,name", [(0, "increase"), (1, "decrease"), (2, "hold")])
def test_state_names(value, name):
    assert str(State(value)) == name


def test_delay_stats_defaults_are_zero_values():
    stats = DelayStats()
    assert stats.usage == 0
    assert stats.state == 0
    assert (stats.measurement, stats.estimate, stats.target_bitrate) == (0, 0, 0)