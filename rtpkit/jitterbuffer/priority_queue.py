"""Ordered store of RTP packets keyed by sequence number."""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from operator import attrgetter
from typing import Callable, Iterator


@dataclass(eq=False)
class Packet:
    """An RTP packet as far as buffering is concerned."""

    sequence_number: int = 0
    timestamp: int = 0
    ssrc: int = 0
    payload: bytes = b""


class InvalidOperationError(LookupError):
    """A find or pop was attempted on an empty queue."""

    def __init__(self) -> None:
        super().__init__("attempt to find or pop on an empty list")


class NotFoundError(LookupError):
    """No packet in the queue matches the requested key."""

    def __init__(self) -> None:
        super().__init__("priority not found")


@dataclass
class _Entry:
    priority: int
    packet: Packet


_priority = attrgetter("priority")


class PriorityQueue:
    """Packets kept in ascending order of their priority (sequence number).

    Priorities are compared as plain integers; a packet pushed with a
    priority equal to one already queued is placed before it.
    """

    def __init__(self) -> None:
        self._entries: list[_Entry] = []

    def push(self, packet: Packet, priority: int) -> None:
        """Insert ``packet`` at the position given by ``priority``."""
        index = bisect_left(self._entries, priority, key=_priority)
        self._entries.insert(index, _Entry(priority, packet))

    def find(self, sequence_number: int) -> Packet:
        """Return the first packet with this priority, leaving it queued."""
        for entry in self._entries:
            if entry.priority == sequence_number:
                return entry.packet
        raise NotFoundError()

    def pop(self) -> Packet:
        """Remove and return the packet at the front of the queue."""
        if not self._entries:
            raise InvalidOperationError()
        return self._entries.pop(0).packet

    def pop_at(self, sequence_number: int) -> Packet:
        """Remove and return the first packet with this priority."""
        return self._take(lambda entry: entry.priority == sequence_number)

    def pop_at_timestamp(self, timestamp: int) -> Packet:
        """Remove and return the first packet carrying this RTP timestamp."""
        return self._take(lambda entry: entry.packet.timestamp == timestamp)

    def clear(self) -> None:
        """Remove every packet."""
        self._entries.clear()

    def _take(self, matches: Callable[[_Entry], bool]) -> Packet:
        if not self._entries:
            raise InvalidOperationError()
        for index, entry in enumerate(self._entries):
            if matches(entry):
                del self._entries[index]
                return entry.packet
        raise NotFoundError()

    def priorities(self) -> list[int]:
        """Priorities of the queued packets, front first."""
        return [entry.priority for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Packet]:
        return iter([entry.packet for entry in self._entries])