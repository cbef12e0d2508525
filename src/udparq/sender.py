from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .constants import ACK_SIZE, MAX_TIMEOUTS, PAYLOAD_SIZE
from .errors import PeerUnresponsiveError
from .net import Address
from .packet import AckPacket, DataPacket
from .receiver import DatagramEndpoint, Metrics
from .seqspace import SequenceSpace

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RetryBudget:
    # reset on any ack, never at a window boundary
    limit: int = MAX_TIMEOUTS
    count: int = 0

    def record_timeout(self) -> None:
        self.count += 1
        if self.count > self.limit:
            raise PeerUnresponsiveError(
                f"receiver not responding after {self.limit} consecutive timeouts"
            )

    def reset(self) -> None:
        self.count = 0


def packet_count(nbytes: int) -> int:
    # an empty final chunk still travels as one empty EOF packet
    return max(1, -(-nbytes // PAYLOAD_SIZE))


@dataclass(slots=True)
class WindowSender:
    udp: DatagramEndpoint
    dest: Address
    space: SequenceSpace
    budget: RetryBudget = field(default_factory=RetryBudget)
    metrics: Metrics = field(default_factory=Metrics)

    def send_window(self, base: int, chunk: bytes, eof: bool) -> None:
        count = packet_count(len(chunk))
        if count > self.space.window_size:
            raise ValueError(
                f"chunk of {len(chunk)} bytes needs {count} packets, window holds {self.space.window_size}"
            )
        acked = [False] * count
        acked_count = 0
        sweep = 0

        while acked_count != count:
            for i in range(count):
                if acked[i]:
                    continue
                payload = chunk[i * PAYLOAD_SIZE : (i + 1) * PAYLOAD_SIZE]
                pkt = DataPacket(seq=base + i, eof=eof and i == count - 1, payload=payload)
                self.udp.sendto(pkt.to_bytes(), self.dest)
                self.metrics.packets_sent += 1
                if sweep:
                    self.metrics.retransmits += 1
            sweep += 1
            acked_count += self._collect_acks(base, acked)

    def _collect_acks(self, base: int, acked: list[bool]) -> int:
        newly_acked = 0
        datagrams = 0
        while True:
            datagram = self.udp.receive(ACK_SIZE)
            if datagram is None:
                break
            datagrams += 1
            self.budget.reset()
            self.metrics.packets_received += 1
            ack = AckPacket.from_bytes(datagram[0])
            if not self.space.in_window(ack.seq, base):
                logger.debug("stale ack seq=%d (window base=%d)", ack.seq, base)
                continue
            slot = self.space.slot(ack.seq)
            if slot >= len(acked) or acked[slot]:
                logger.debug("duplicate ack seq=%d", ack.seq)
                continue
            acked[slot] = True
            newly_acked += 1

        if datagrams == 0:
            self.metrics.timeouts += 1
            logger.debug(
                "no acks for window base=%d; timeout %d/%d", base, self.budget.count + 1, self.budget.limit
            )
            self.budget.record_timeout()
        return newly_acked
