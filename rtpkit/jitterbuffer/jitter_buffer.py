"""Jitter buffer ordering RTP packets before playout."""

from __future__ import annotations

import enum
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

from rtpkit.jitterbuffer.priority_queue import (
    InvalidOperationError,
    NotFoundError,
    Packet,
    PriorityQueue,
)

_SEQ_MASK = 0xFFFF
_DEFAULT_MIN_START_COUNT = 50
_OVERFLOW_LIMIT = 100


class BufferUnderrunError(LookupError):
    """Peek was attempted on an empty buffer."""

    def __init__(self) -> None:
        super().__init__("invalid Peek: Empty jitter buffer")


class PopWhileBufferingError(RuntimeError):
    """Pop was attempted before the buffer started emitting."""

    def __init__(self) -> None:
        super().__init__("attempt to pop while buffering")


class State(enum.IntEnum):
    """Whether the buffer is still filling or already emitting packets."""

    BUFFERING = 0
    EMITTING = 1

    def __str__(self) -> str:
        return "Buffering" if self is State.BUFFERING else "Emitting"


class Event(str, enum.Enum):
    """Events a jitter buffer reports to listeners."""

    START_BUFFERING = "startBuffering"
    BEGIN_PLAYBACK = "playing"
    BUFFER_UNDERFLOW = "underflow"
    BUFFER_OVERFLOW = "overflow"


@dataclass
class Stats:
    """Counters kept over the life of a jitter buffer."""

    out_of_order_count: int = 0
    underflow_count: int = 0
    overflow_count: int = 0


EventListener = Callable[[Event, "JitterBuffer"], None]


class JitterBuffer:
    """Buffers pushed packets in sequence order and releases them for playout.

    Popping is refused until ``min_packet_count`` packets have been pushed.
    """

    def __init__(self, min_packet_count: int = _DEFAULT_MIN_START_COUNT) -> None:
        self.packets = PriorityQueue()
        self.min_start_count = min_packet_count
        self.last_sequence = 0
        self._playout_head = 0
        self._playout_ready = False
        self.state = State.BUFFERING
        self.stats = Stats()
        self._listeners: dict[Event, list[EventListener]] = defaultdict(list)
        self._lock = threading.RLock()

    def listen(self, event: Event, callback: EventListener) -> None:
        """Call ``callback`` whenever ``event`` occurs."""
        self._listeners[Event(event)].append(callback)

    @property
    def playout_head(self) -> int:
        """Sequence number that the next ``pop`` will try."""
        with self._lock:
            return self._playout_head

    @playout_head.setter
    def playout_head(self, value: int) -> None:
        with self._lock:
            self._playout_head = value & _SEQ_MASK

    def push(self, packet: Packet) -> None:
        """Add a packet; it is stored as is, not copied."""
        with self._lock:
            if len(self.packets) == 0:
                self._emit(Event.START_BUFFERING)
            if len(self.packets) > _OVERFLOW_LIMIT:
                self.stats.overflow_count += 1
                self._emit(Event.BUFFER_OVERFLOW)
            if not self._playout_ready and len(self.packets) == 0:
                self._playout_head = packet.sequence_number
            self._update_stats(packet.sequence_number)
            self.packets.push(packet, packet.sequence_number)
            self._update_state()

    def peek(self, playout_head: bool) -> Packet:
        """Return the packet at the playout head (if emitting and asked for),
        otherwise the one with the last received sequence number."""
        with self._lock:
            if len(self.packets) < 1:
                raise BufferUnderrunError()
            if playout_head and self.state is State.EMITTING:
                return self.packets.find(self._playout_head)
            return self.packets.find(self.last_sequence)

    def pop(self) -> Packet:
        """Remove the packet at the playout head and advance the head."""
        with self._lock:
            packet = self._pop_checked(lambda: self.packets.pop_at(self._playout_head))
            self._playout_head = (self._playout_head + 1) & _SEQ_MASK
            self._update_state()
            return packet

    def pop_at_sequence(self, sequence_number: int) -> Packet:
        """Remove the packet with ``sequence_number`` and advance the head."""
        with self._lock:
            packet = self._pop_checked(lambda: self.packets.pop_at(sequence_number))
            self._playout_head = (self._playout_head + 1) & _SEQ_MASK
            self._update_state()
            return packet

    def peek_at_sequence(self, sequence_number: int) -> Packet:
        """Return the packet with ``sequence_number`` without removing it."""
        with self._lock:
            return self.packets.find(sequence_number)

    def pop_at_timestamp(self, timestamp: int) -> Packet:
        """Remove a packet with this RTP timestamp; repeat to drain them all."""
        with self._lock:
            packet = self._pop_checked(lambda: self.packets.pop_at_timestamp(timestamp))
            self._update_state()
            return packet

    def clear(self, reset_state: bool) -> None:
        """Empty the buffer, optionally resetting state and statistics."""
        with self._lock:
            self.packets.clear()
            if reset_state:
                self.last_sequence = 0
                self.state = State.BUFFERING
                self.stats = Stats()
                self.min_start_count = _DEFAULT_MIN_START_COUNT

    def _pop_checked(self, take: Callable[[], Packet]) -> Packet:
        if self.state is not State.EMITTING:
            raise PopWhileBufferingError()
        try:
            return take()
        except (NotFoundError, InvalidOperationError):
            self.stats.underflow_count += 1
            self._emit(Event.BUFFER_UNDERFLOW)
            raise

    def _update_stats(self, sequence_number: int) -> None:
        if len(self.packets) > 0 and sequence_number != (self.last_sequence + 1) & _SEQ_MASK:
            self.stats.out_of_order_count += 1
        self.last_sequence = sequence_number

    def _update_state(self) -> None:
        if len(self.packets) >= self.min_start_count and self.state is State.BUFFERING:
            self.state = State.EMITTING
            self._playout_ready = True
            self._emit(Event.BEGIN_PLAYBACK)

    def _emit(self, event: Event) -> None:
        for listener in list(self._listeners[event]):
            listener(event, self)