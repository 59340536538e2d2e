import pytest

from rtpkit.jitterbuffer.jitter_buffer import (
    BufferUnderrunError,
    Event,
    JitterBuffer,
    PopWhileBufferingError,
    State,
)
from rtpkit.jitterbuffer.priority_queue import (
    InvalidOperationError,
    NotFoundError,
    Packet,
)

MAX_UINT16 = 65535


def _pkt(seq, ts, payload=b"\x02"):
    return Packet(sequence_number=seq, timestamp=ts, payload=payload)


def _push_wrapping(jb, count):
    for i in range(count):
        jb.push(_pkt((MAX_UINT16 - 32 + i) & 0xFFFF, 512 + i))


def test_appends_packets_in_order():
    jb = JitterBuffer()
    assert jb.last_sequence == 0
    jb.push(_pkt(5000, 500))
    jb.push(_pkt(5001, 501))
    jb.push(_pkt(5002, 502))
    assert jb.last_sequence == 5002
    jb.push(_pkt(5012, 512))
    assert jb.stats.out_of_order_count == 1
    assert len(jb.packets) == 4
    assert jb.last_sequence == 5012


def test_appends_packets_and_wraps():
    jb = JitterBuffer(min_packet_count=1)
    assert jb.last_sequence == 0
    jb.push(_pkt(65535, 500))
    assert jb.last_sequence == 65535
    jb.push(_pkt(0, 512))
    assert len(jb.packets) == 2
    assert jb.last_sequence == 0
    assert jb.stats.out_of_order_count == 0
    assert jb.pop().sequence_number == 65535
    assert jb.pop().sequence_number == 0


def test_appends_packets_and_begins_playout():
    jb = JitterBuffer()
    for i in range(100):
        jb.push(_pkt(5012 + i, 512 + i))
    assert len(jb.packets) == 100
    assert jb.state is State.EMITTING
    assert jb.playout_head == 5012
    assert jb.pop().sequence_number == 5012


def test_begin_playback_event():
    jb = JitterBuffer(min_packet_count=1)
    events = []
    jb.listen(Event.BEGIN_PLAYBACK, lambda event, _jb: events.append(event))
    for i in range(2):
        jb.push(_pkt(5012 + i, 512 + i))
    assert len(jb.packets) == 2
    assert jb.state is State.EMITTING
    assert jb.playout_head == 5012
    assert jb.pop().sequence_number == 5012
    assert events == [Event.BEGIN_PLAYBACK]


def test_wraps_playout_correctly():
    jb = JitterBuffer()
    _push_wrapping(jb, 100)
    assert len(jb.packets) == 100
    assert jb.state is State.EMITTING
    assert jb.playout_head == MAX_UINT16 - 32
    assert jb.pop().sequence_number == MAX_UINT16 - 32
    for i in range(99):
        assert jb.pop().sequence_number == (MAX_UINT16 - 31 + i) & 0xFFFF
    with pytest.raises(InvalidOperationError):
        jb.pop()
    assert jb.stats.underflow_count == 1


def test_pops_at_timestamp_correctly():
    jb = JitterBuffer()
    _push_wrapping(jb, 100)
    assert len(jb.packets) == 100
    assert jb.state is State.EMITTING
    assert jb.pop_at_timestamp(513).sequence_number == MAX_UINT16 - 32 + 1
    with pytest.raises(NotFoundError):
        jb.pop_at_timestamp(513)
    assert jb.pop().sequence_number == MAX_UINT16 - 32


def test_can_peek_at_a_packet():
    jb = JitterBuffer()
    jb.push(_pkt(5000, 500))
    jb.push(_pkt(5001, 501))
    jb.push(_pkt(5002, 502))
    assert jb.peek(False).sequence_number == 5002
    _push_wrapping(jb, 100)
    assert jb.peek(True).sequence_number == 5000


def test_peek_empty_raises_underrun():
    jb = JitterBuffer()
    with pytest.raises(BufferUnderrunError):
        jb.peek(False)


def test_pop_at_sequence_with_invalid_sequence():
    jb = JitterBuffer()
    _push_wrapping(jb, 50)
    jb.push(_pkt(1019, 9000))
    jb.push(_pkt(1020, 9000))
    assert len(jb.packets) == 52
    assert jb.state is State.EMITTING
    with pytest.raises(NotFoundError):
        jb.pop_at_sequence(9000)


def test_pops_at_timestamp_with_multiple_packets():
    jb = JitterBuffer()
    _push_wrapping(jb, 50)
    jb.push(_pkt(1019, 9000))
    jb.push(_pkt(1020, 9000))
    assert len(jb.packets) == 52
    assert jb.state is State.EMITTING
    assert jb.pop_at_timestamp(9000).sequence_number == 1019
    assert jb.pop_at_timestamp(9000).sequence_number == 1020
    assert jb.pop().sequence_number == MAX_UINT16 - 32


def test_peeks_at_sequence_with_multiple_packets():
    jb = JitterBuffer()
    _push_wrapping(jb, 50)
    jb.push(_pkt(1019, 9000))
    jb.push(_pkt(1020, 9000))
    assert len(jb.packets) == 52
    assert jb.state is State.EMITTING
    assert jb.peek_at_sequence(1019).sequence_number == 1019
    assert jb.peek_at_sequence(1020).sequence_number == 1020
    assert jb.pop_at_sequence(MAX_UINT16 - 32).sequence_number == MAX_UINT16 - 32


def test_set_playout_head():
    jb = JitterBuffer(min_packet_count=1)
    for i in range(10):
        if i == 4:
            continue
        jb.push(_pkt(i, 512 + i, b"\x00"))

    for expected in range(4):
        assert jb.pop().sequence_number == expected

    with pytest.raises(NotFoundError):
        jb.pop()
    assert jb.playout_head == 4

    jb.push(_pkt(10, 522, b"\x00"))
    with pytest.raises(NotFoundError):
        jb.pop()
    assert jb.playout_head == 4

    jb.playout_head = jb.playout_head + 1
    for expected in range(5, 11):
        assert jb.pop().sequence_number == expected


def test_allows_clearing_the_buffer():
    jb = JitterBuffer()
    jb.clear(False)
    assert jb.last_sequence == 0
    jb.push(_pkt(5000, 500))
    jb.push(_pkt(5001, 501))
    jb.push(_pkt(5002, 502))
    assert jb.last_sequence == 5002
    jb.clear(True)
    assert jb.last_sequence == 0
    assert jb.stats.out_of_order_count == 0
    assert len(jb.packets) == 0
    assert jb.state is State.BUFFERING


def test_pop_while_buffering_raises():
    jb = JitterBuffer()
    jb.push(_pkt(1, 1))
    with pytest.raises(PopWhileBufferingError):
        jb.pop()
    with pytest.raises(PopWhileBufferingError):
        jb.pop_at_sequence(1)
    with pytest.raises(PopWhileBufferingError):
        jb.pop_at_timestamp(1)


def test_start_buffering_and_underflow_events():
    jb = JitterBuffer(min_packet_count=1)
    events = []
    for event in Event:
        jb.listen(event, lambda ev, _jb: events.append(ev))
    jb.push(_pkt(10, 1))
    jb.pop()
    with pytest.raises(InvalidOperationError):
        jb.pop()
    assert events == [Event.START_BUFFERING, Event.BEGIN_PLAYBACK, Event.BUFFER_UNDERFLOW]
    assert jb.stats.underflow_count == 1


def test_overflow_counted_past_limit():
    jb = JitterBuffer()
    overflows = []
    jb.listen(Event.BUFFER_OVERFLOW, lambda ev, _jb: overflows.append(ev))
    for i in range(103):
        jb.push(_pkt(i, i))
    assert jb.stats.overflow_count == 2
    assert len(overflows) == 2


def test_state_and_event_strings():
    assert str(State.BUFFERING) == "Buffering"
    assert str(State.EMITTING) == "Emitting"
    assert Event("playing") is Event.BEGIN_PLAYBACK