from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol

from .constants import PACKET_SIZE
from .errors import TruncatedPacketError
from .net import Address, Datagram
from .packet import AckPacket, DataPacket
from .seqspace import SequenceSpace, WindowBuffer

logger = logging.getLogger(__name__)


class DatagramEndpoint(Protocol):
    def sendto(self, data: bytes, addr: Address) -> None: ...

    def receive(self, bufsize: int = ...) -> Datagram | None: ...

    def set_timeout(self, timeout_ms: int) -> None: ...


@dataclass(slots=True)
class Metrics:
    bytes_transferred: int = 0
    packets_sent: int = 0
    packets_received: int = 0
    timeouts: int = 0
    retransmits: int = 0
    windows: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_transferred * 8 / 1_000_000) / self.duration_s


@dataclass(frozen=True, slots=True)
class WindowResult:
    nbytes: int
    eof: bool
    packets: int


@dataclass(slots=True)
class WindowReceiver:
    udp: DatagramEndpoint
    space: SequenceSpace
    metrics: Metrics = field(default_factory=Metrics)

    def receive_window(self, base: int, buffer: WindowBuffer) -> WindowResult:
        expected = self.space.window_size
        received = [False] * self.space.window_size
        received_count = 0
        nbytes = 0
        eof = False
        buffer.reset()

        while received_count < expected:
            # blocks until the sender retransmits whatever is missing
            datagram = self.udp.receive(PACKET_SIZE)
            if datagram is None:
                continue
            raw, addr = datagram
            self.metrics.packets_received += 1
            pkt = DataPacket.from_bytes(raw)
            slot = self.space.slot(pkt.seq)

            if not self.space.in_window(pkt.seq, base):
                logger.debug("stale packet seq=%d (window base=%d)", pkt.seq, base)
            elif received[slot]:
                logger.debug("duplicate packet seq=%d", pkt.seq)
            else:
                buffer.put(slot, pkt.payload)
                received[slot] = True
                received_count += 1
                nbytes += len(pkt.payload)
                if pkt.eof:
                    eof = True
                    expected = slot + 1
                    logger.debug("end of stream at seq=%d; window expects %d packets", pkt.seq, expected)

            self.udp.sendto(AckPacket(pkt.seq).to_bytes(), addr)
            self.metrics.packets_sent += 1

        return WindowResult(nbytes=nbytes, eof=eof, packets=received_count)

    def linger(self, timeout_ms: int) -> int:
        """Re-ack retransmissions of the final window until the link goes quiet."""
        if timeout_ms <= 0:
            return 0
        self.udp.set_timeout(timeout_ms)
        reacked = 0
        while True:
            datagram = self.udp.receive(PACKET_SIZE)
            if datagram is None:
                return reacked
            raw, addr = datagram
            try:
                pkt = DataPacket.from_bytes(raw)
            except TruncatedPacketError:
                # the file is already written; nothing to echo
                logger.debug("ignoring %d-byte datagram while lingering", len(raw))
                continue
            self.udp.sendto(AckPacket(pkt.seq).to_bytes(), addr)
            self.metrics.packets_sent += 1
            reacked += 1
