"""Dumping of RTP and RTCP packets to text streams."""

from __future__ import annotations

import logging
import queue
import sys
import threading
from typing import Any, Callable, Mapping, Optional, Sequence, TextIO

_log = logging.getLogger("packet_dumper")

Attributes = Mapping[str, Any]
RTPFormatCallback = Callable[[Any, "Attributes | None"], str]
RTCPFormatCallback = Callable[[Sequence[Any], "Attributes | None"], str]
RTPFilterCallback = Callable[[Any], bool]
RTCPFilterCallback = Callable[[Sequence[Any]], bool]

_STOP = object()


def default_rtp_formatter(packet: Any, attributes: Attributes | None = None) -> str:
    """Format one RTP packet on its own line."""
    return f"{packet}\n"


def default_rtcp_formatter(packets: Sequence[Any], attributes: Attributes | None = None) -> str:
    """Format a batch of RTCP packets on one line, as ``[a b c]``."""
    return "[" + " ".join(str(p) for p in packets) + "]\n"


class PacketDumper:
    """Writes formatted packets to streams from a background thread.

    Packets logged before ``close`` are all written; those logged afterwards
    are dropped. A filter left as ``None`` lets every packet through.
    """

    def __init__(
        self,
        rtp_stream: TextIO | None = None,
        rtcp_stream: TextIO | None = None,
        rtp_format: RTPFormatCallback = default_rtp_formatter,
        rtcp_format: RTCPFormatCallback = default_rtcp_formatter,
        rtp_filter: Optional[RTPFilterCallback] = None,
        rtcp_filter: Optional[RTCPFilterCallback] = None,
    ) -> None:
        self.rtp_stream = rtp_stream if rtp_stream is not None else sys.stdout
        self.rtcp_stream = rtcp_stream if rtcp_stream is not None else sys.stdout
        self.rtp_format = rtp_format
        self.rtcp_format = rtcp_format
        self.rtp_filter = rtp_filter
        self.rtcp_filter = rtcp_filter
        self._queue: queue.Queue[object] = queue.Queue()
        self._closed = False
        self._close_lock = threading.Lock()
        self._worker = threading.Thread(target=self._loop, daemon=True)
        self._worker.start()

    def log_rtp_packet(self, packet: Any, attributes: Attributes | None = None) -> None:
        """Queue an RTP packet for dumping."""
        self._submit(("rtp", packet, attributes))

    def log_rtcp_packets(self, packets: Sequence[Any], attributes: Attributes | None = None) -> None:
        """Queue a batch of RTCP packets for dumping."""
        self._submit(("rtcp", list(packets), attributes))

    def _submit(self, item: tuple[str, Any, Attributes | None]) -> None:
        with self._close_lock:
            if not self._closed:
                self._queue.put(item)

    def close(self) -> None:
        """Stop dumping after everything already logged has been written."""
        with self._close_lock:
            if not self._closed:
                self._closed = True
                self._queue.put(_STOP)
        self._worker.join()

    @property
    def closed(self) -> bool:
        """Whether ``close`` has been called."""
        return self._closed

    def __enter__(self) -> "PacketDumper":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _loop(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            kind, payload, attributes = item  # type: ignore[misc]
            if kind == "rtp":
                if self.rtp_filter is None or self.rtp_filter(payload):
                    self._write(self.rtp_stream, self.rtp_format(payload, attributes), "RTP")
            elif self.rtcp_filter is None or self.rtcp_filter(payload):
                self._write(self.rtcp_stream, self.rtcp_format(payload, attributes), "RTCP")

    @staticmethod
    def _write(stream: TextIO, text: str, kind: str) -> None:
        try:
            stream.write(text)
        except (OSError, ValueError) as exc:
            _log.error("could not dump %s packet %s", kind, exc)