# rtpkit

Pure-Python building blocks for handling real-time media streams. It has no
dependencies outside the standard library.

## What is inside

- `rtpkit.gcc` – the pieces of a delay- and loss-based congestion controller:
  - `common`: `Usage`, `State` (with `State.transition`), `DelayStats`, the
    helpers `min_int`, `max_int`, `clamp_int`, `clamp_duration`, and the time
    units `NANOSECOND`, `MICROSECOND`, `MILLISECOND`, `SECOND`.
  - `kalman.Kalman`, `adaptive_threshold.AdaptiveThreshold`,
    `arrival_group` (`Acknowledgment`, `ArrivalGroup`, `ArrivalGroupAccumulator`),
    `slope_estimator.SlopeEstimator`, `overuse_detector.OveruseDetector`,
    `rate_calculator.RateCalculator`, `rate_controller.RateController`,
    `loss_based.LossBasedBandwidthEstimator`.
  - `delay_controller.DelayController`, which wires the delay-based pieces
    together on two worker threads and reports `DelayStats` to a callback set
    with `on_update`. It can be used as a context manager; `close` waits for
    all queued feedback to be processed.
- `rtpkit.jitterbuffer` – `PriorityQueue`, ordered by sequence number, and
  `JitterBuffer`, which buffers packets until `min_packet_count` have arrived
  and then releases them for playout, reporting `Event`s (start of buffering,
  playback, underflow, overflow) to listeners.
- `rtpkit.nack` – `ReceiveLog`, a sliding window of received 16-bit sequence
  numbers (sizes 64 to 32768, powers of two) that reports the ones missing.
- `rtpkit.packetdump` – `PacketDumper`, which writes formatted RTP and RTCP
  packets to text streams from a background thread, with optional filters and
  formatters.

All durations and points in time in `rtpkit.gcc` are integer nanoseconds; an
arrival time of `0` means the packet was not received.

## Installation

```
pip install .
```

## Examples

Smooth a delay measurement with the Kalman filter:

```python
from rtpkit.gcc.common import MILLISECOND
from rtpkit.gcc.kalman import Kalman

kalman = Kalman()
estimate = kalman.update_estimate(5 * MILLISECOND)  # nanoseconds
```

Buffer packets and play them out in order:

```python
from rtpkit.jitterbuffer.jitter_buffer import Event, JitterBuffer
from rtpkit.jitterbuffer.priority_queue import Packet

buffer = JitterBuffer(min_packet_count=2)
buffer.listen(Event.BEGIN_PLAYBACK, lambda event, jb: print("playing"))
buffer.push(Packet(sequence_number=10, timestamp=900))
buffer.push(Packet(sequence_number=11, timestamp=930))
first = buffer.pop()  # the packet with sequence number 10
```

Popping before enough packets have arrived raises `PopWhileBufferingError`;
popping a sequence number that is not buffered raises `NotFoundError`.

Track missing sequence numbers:

```python
from rtpkit.nack.receive_log import ReceiveLog

log = ReceiveLog(64)
for seq in (10, 11, 13):
    log.add(seq)
print(log.missing_seq_numbers(0))  # [12]
print(11 in log)                   # True
```

An unsupported size raises `InvalidSizeError`.

Dump packets to a stream:

```python
import io
from rtpkit.packetdump.dumper import PacketDumper

out = io.StringIO()
with PacketDumper(rtp_stream=out, rtcp_stream=out) as dumper:
    dumper.log_rtcp_packets(["picture loss"], {})
print(out.getvalue())  # [picture loss]
```

## What this package does not do

- It does not parse or serialise RTP or RTCP packets; `Packet` holds only the
  fields buffering needs, and the dumper formats whatever objects it is given.
- It has no interceptor chain, pacer, or sender-side estimator that combines
  the loss- and delay-based estimates; those pieces are provided separately
  and have to be combined by the caller.
- It does not send NACKs or retransmit packets; `ReceiveLog` only reports
  which sequence numbers are missing.

## Running the tests

```
pip install .[test]
pytest
```