from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Optional

from .constants import (
    ACK_TIMEOUT_MS,
    DEFAULT_LINGER_MS,
    DEFAULT_LISTEN_HOST,
    DEFAULT_REMOTE_HOST,
    MAX_TIMEOUTS,
    PAYLOAD_SIZE,
)
from .errors import FileAccessError
from .net import Address, Impairment, UdpEndpoint
from .receiver import DatagramEndpoint, Metrics, WindowReceiver
from .sender import RetryBudget, WindowSender
from .seqspace import SequenceSpace, WindowBuffer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


def open_for_send(path: str) -> BinaryIO:
    try:
        return open(path, "rb")
    except OSError as e:
        raise FileAccessError(f"could not open {path}: {e}") from e


def open_for_receive(path: str) -> BinaryIO:
    try:
        return open(path, "wb")
    except OSError as e:
        raise FileAccessError(f"could not create {path}: {e}") from e


@dataclass(slots=True)
class SenderSession:
    udp: DatagramEndpoint
    dest: Address
    f: BinaryIO
    space: SequenceSpace = field(default_factory=SequenceSpace)
    budget: RetryBudget = field(default_factory=RetryBudget)
    on_progress: Optional[ProgressCallback] = None
    base: int = 0
    eof_reached: bool = False
    bytes_transferred: int = 0

    def run(self) -> Metrics:
        metrics = Metrics()
        window = WindowSender(self.udp, self.dest, self.space, self.budget, metrics)
        window_bytes = self.space.window_size * PAYLOAD_SIZE
        logger.info("sending to %s:%d", *self.dest)

        # one chunk of lookahead: the last packet must carry EOF even when the
        # file ends exactly on a window boundary
        chunk = self.f.read(window_bytes)
        if not chunk:
            logger.info("empty file; sending a bare end-of-stream packet")
            window.send_window(self.base, b"", eof=True)
            metrics.windows += 1
            self.eof_reached = True

        while chunk:
            following = self.f.read(window_bytes)
            self.eof_reached = not following
            logger.debug("window base=%d: %d bytes eof=%s", self.base, len(chunk), self.eof_reached)
            window.send_window(self.base, chunk, eof=self.eof_reached)
            metrics.windows += 1
            self.bytes_transferred += len(chunk)
            metrics.bytes_transferred = self.bytes_transferred
            if self.on_progress is not None:
                self.on_progress(self.bytes_transferred)
            self.base = self.space.advance(self.base)
            chunk = following

        metrics.end_ts = time.monotonic()
        logger.info(
            "sent %d bytes in %d windows (%d retransmits, %d timeouts)",
            self.bytes_transferred,
            metrics.windows,
            metrics.retransmits,
            metrics.timeouts,
        )
        return metrics


@dataclass(slots=True)
class ReceiverSession:
    udp: DatagramEndpoint
    out: BinaryIO
    space: SequenceSpace = field(default_factory=SequenceSpace)
    linger_ms: int = DEFAULT_LINGER_MS
    on_progress: Optional[ProgressCallback] = None
    base: int = 0
    eof_reached: bool = False
    bytes_transferred: int = 0

    def run(self) -> Metrics:
        metrics = Metrics()
        window = WindowReceiver(self.udp, self.space, metrics)
        buffer = WindowBuffer(self.space.window_size, PAYLOAD_SIZE)
        logger.info("waiting for data")

        while not self.eof_reached:
            result = window.receive_window(self.base, buffer)
            with buffer.view(result.nbytes) as data:
                self.out.write(data)
            metrics.windows += 1
            self.eof_reached = result.eof
            self.bytes_transferred += result.nbytes
            metrics.bytes_transferred = self.bytes_transferred
            logger.debug("window base=%d: %d bytes in %d packets", self.base, result.nbytes, result.packets)
            if self.on_progress is not None:
                self.on_progress(self.bytes_transferred)
            self.base = self.space.advance(self.base)

        self.out.flush()
        metrics.end_ts = time.monotonic()
        logger.info("received %d bytes in %d windows", self.bytes_transferred, metrics.windows)

        reacked = window.linger(self.linger_ms)
        if reacked:
            logger.info("re-acked %d retransmissions while lingering", reacked)
        return metrics


def send_file(
    path: str,
    port: int,
    host: str = DEFAULT_REMOTE_HOST,
    *,
    impairment: Impairment | None = None,
    timeout_ms: int = ACK_TIMEOUT_MS,
    max_timeouts: int = MAX_TIMEOUTS,
    on_progress: Optional[ProgressCallback] = None,
) -> Metrics:
    with UdpEndpoint.sending(timeout_ms=timeout_ms, impairment=impairment) as udp:
        with open_for_send(path) as f:
            session = SenderSession(
                udp,
                (host, port),
                f,
                budget=RetryBudget(limit=max_timeouts),
                on_progress=on_progress,
            )
            return session.run()


def receive_file(
    path: str,
    port: int,
    host: str = DEFAULT_LISTEN_HOST,
    *,
    impairment: Impairment | None = None,
    linger_ms: int = DEFAULT_LINGER_MS,
    on_progress: Optional[ProgressCallback] = None,
) -> Metrics:
    with UdpEndpoint.listening(host, port, impairment=impairment) as udp:
        with open_for_receive(path) as out:
            session = ReceiverSession(udp, out, linger_ms=linger_ms, on_progress=on_progress)
            return session.run()
