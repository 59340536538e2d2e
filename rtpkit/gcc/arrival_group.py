"""Grouping of acknowledged packets into arrival groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from rtpkit.gcc.common import MILLISECOND


@dataclass(frozen=True)
class Acknowledgment:
    """Feedback for one sent packet; times are nanoseconds, 0 meaning unset."""

    sequence_number: int = 0
    size: int = 0
    departure: int = 0
    arrival: int = 0


@dataclass
class ArrivalGroup:
    """Packets sent in one burst, timed by first departure and last arrival."""

    packets: list[Acknowledgment] = field(default_factory=list)
    departure: int = 0
    arrival: int = 0

    @classmethod
    def from_acknowledgment(cls, ack: Acknowledgment) -> "ArrivalGroup":
        """Start a group with a single packet."""
        return cls(packets=[ack], departure=ack.departure, arrival=ack.arrival)

    def add(self, ack: Acknowledgment) -> None:
        """Append a packet; the group's arrival becomes that packet's arrival."""
        self.packets.append(ack)
        self.arrival = ack.arrival

    def __str__(self) -> str:
        return (
            "ARRIVALGROUP:\n"
            f"\tARRIVAL:\t{int(self.arrival / 1e6)}\n"
            f"\tDEPARTURE:\t{int(self.departure / 1e6)}\n"
            f"\tPACKETS:\n{self.packets}\n"
        )


def inter_arrival_time(group: ArrivalGroup, ack: Acknowledgment) -> int:
    """Time between the group's arrival and the packet's arrival."""
    return ack.arrival - group.arrival


def inter_departure_time(group: ArrivalGroup, ack: Acknowledgment) -> int:
    """Time between the group's departure and the packet's departure."""
    if not group.packets:
        return 0
    return ack.departure - group.departure


def inter_group_delay_variation_packet(group: ArrivalGroup, ack: Acknowledgment) -> int:
    """Difference between inter-arrival and inter-departure time."""
    return (ack.arrival - group.arrival) - (ack.departure - group.departure)


class ArrivalGroupAccumulator:
    """Splits a stream of acknowledgments into arrival groups."""

    def __init__(self) -> None:
        self.inter_departure_threshold = 5 * MILLISECOND
        self.inter_arrival_threshold = 5 * MILLISECOND
        self.inter_group_delay_variation_threshold = 0

    def run(
        self,
        batches: Iterable[Iterable[Acknowledgment]],
        on_group: Callable[[ArrivalGroup], None],
    ) -> None:
        """Consume batches of acknowledgments, reporting each completed group.

        The group still open when the input ends is not reported.
        """
        group: ArrivalGroup | None = None
        for acks in batches:
            for ack in acks:
                if group is None:
                    group = ArrivalGroup.from_acknowledgment(ack)
                    continue
                if ack.arrival < group.arrival:
                    continue
                if ack.departure <= group.departure:
                    continue
                if inter_departure_time(group, ack) <= self.inter_departure_threshold:
                    group.add(ack)
                    continue
                if (
                    inter_arrival_time(group, ack) <= self.inter_arrival_threshold
                    and inter_group_delay_variation_packet(group, ack)
                    < self.inter_group_delay_variation_threshold
                ):
                    group.add(ack)
                    continue
                on_group(group)
                group = ArrivalGroup.from_acknowledgment(ack)