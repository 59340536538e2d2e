"""Record of received RTP sequence numbers for generating NACKs."""

from __future__ import annotations

import threading

_SEQ_MASK = 0xFFFF
_UINT16_SIZE_HALF = 1 << 15
ALLOWED_SIZES = tuple(1 << i for i in range(6, 16))


class InvalidSizeError(ValueError):
    """An unsupported buffer size was requested."""


class ReceiveLog:
    """Sliding window over the last ``size`` sequence numbers.

    Sequence numbers are 16-bit and wrap around; ``size`` must be a power
    of two between 64 and 32768.
    """

    def __init__(self, size: int) -> None:
        if size not in ALLOWED_SIZES:
            raise InvalidSizeError(
                f"invalid size: {size} is not a valid size, allowed sizes: {list(ALLOWED_SIZES)}"
            )
        self.size = size
        self._received = bytearray(size)
        self.end = 0
        self.started = False
        self.last_consecutive = 0
        self._lock = threading.Lock()

    def add(self, seq: int) -> None:
        """Mark ``seq`` as received."""
        seq &= _SEQ_MASK
        with self._lock:
            if not self.started:
                self._set(seq, True)
                self.end = seq
                self.started = True
                self.last_consecutive = seq
                return

            diff = (seq - self.end) & _SEQ_MASK
            if diff == 0:
                return
            if diff < _UINT16_SIZE_HALF:
                # seq is ahead of end (counting rollover): forget the slots
                # skipped over, they may hold packets from a window ago.
                i = (self.end + 1) & _SEQ_MASK
                while i != seq:
                    self._set(i, False)
                    i = (i + 1) & _SEQ_MASK
                self.end = seq

                if (self.last_consecutive + 1) & _SEQ_MASK == seq:
                    self.last_consecutive = seq
                elif (seq - self.last_consecutive) & _SEQ_MASK > self.size:
                    self.last_consecutive = (seq - self.size) & _SEQ_MASK
                    self._fix_last_consecutive()
            elif (self.last_consecutive + 1) & _SEQ_MASK == seq:
                # seq is behind end and fills the first gap.
                self.last_consecutive = seq
                self._fix_last_consecutive()

            self._set(seq, True)

    def __contains__(self, seq: object) -> bool:
        if not isinstance(seq, int):
            return False
        seq &= _SEQ_MASK
        with self._lock:
            diff = (self.end - seq) & _SEQ_MASK
            if diff >= _UINT16_SIZE_HALF or diff >= self.size:
                return False
            return self._get(seq)

    def missing_seq_numbers(self, skip_last_n: int) -> list[int]:
        """Sequence numbers not received, ignoring the last ``skip_last_n``."""
        with self._lock:
            until = (self.end - skip_last_n) & _SEQ_MASK
            if (until - self.last_consecutive) & _SEQ_MASK >= _UINT16_SIZE_HALF:
                return []
            missing = []
            i = (self.last_consecutive + 1) & _SEQ_MASK
            stop = (until + 1) & _SEQ_MASK
            while i != stop:
                if not self._get(i):
                    missing.append(i)
                i = (i + 1) & _SEQ_MASK
            return missing

    def _set(self, seq: int, value: bool) -> None:
        self._received[seq % self.size] = 1 if value else 0

    def _get(self, seq: int) -> bool:
        return self._received[seq % self.size] == 1

    def _fix_last_consecutive(self) -> None:
        stop = (self.end + 1) & _SEQ_MASK
        i = (self.last_consecutive + 1) & _SEQ_MASK
        while i != stop and self._get(i):
            i = (i + 1) & _SEQ_MASK
        self.last_consecutive = (i - 1) & _SEQ_MASK