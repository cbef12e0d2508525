from __future__ import annotations

import io
import os
import threading
from dataclasses import dataclass

from .constants import ACK_TIMEOUT_MS, MAX_TIMEOUTS
from .net import Impairment, UdpEndpoint
from .receiver import Metrics
from .sender import RetryBudget
from .session import ReceiverSession, SenderSession

LOOPBACK = "127.0.0.1"


@dataclass(frozen=True, slots=True)
class LoopbackTransfer:
    received: bytes
    sender: Metrics
    receiver: Metrics


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    windows: int
    retransmits: int
    timeouts: int


def transfer_bytes(
    payload: bytes,
    *,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    linger_ms: int = 500,
    timeout_ms: int = ACK_TIMEOUT_MS,
    max_timeouts: int = MAX_TIMEOUTS,
    join_timeout_s: float = 30.0,
) -> LoopbackTransfer:
    impair = Impairment(loss_rate=loss_rate, delay_ms=delay_ms)

    recv_ep = UdpEndpoint.listening(LOOPBACK, 0, impairment=impair)
    dest = recv_ep.address
    out = io.BytesIO()
    recv_holder: dict[str, object] = {}

    def recv_runner() -> None:
        try:
            recv_holder["m"] = ReceiverSession(recv_ep, out, linger_ms=linger_ms).run()
        except Exception as e:
            recv_holder["err"] = e
        finally:
            recv_ep.close()

    t = threading.Thread(target=recv_runner, daemon=True)
    t.start()

    try:
        with UdpEndpoint.sending(timeout_ms=timeout_ms, impairment=impair) as send_ep:
            session = SenderSession(
                send_ep,
                dest,
                io.BytesIO(payload),
                budget=RetryBudget(limit=max_timeouts),
            )
            send_metrics = session.run()
        t.join(timeout=join_timeout_s)
        if t.is_alive():
            raise RuntimeError("receiver did not finish")
    finally:
        if t.is_alive():
            recv_ep.abort()
            t.join(timeout=1.0)

    if "err" in recv_holder:
        raise recv_holder["err"]  # type: ignore[misc]
    if "m" not in recv_holder:
        raise RuntimeError("receiver did not finish")

    recv_metrics = recv_holder["m"]
    assert isinstance(recv_metrics, Metrics)
    return LoopbackTransfer(received=out.getvalue(), sender=send_metrics, receiver=recv_metrics)


def run_benchmark(
    *,
    size_bytes: int,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    linger_ms: int = 500,
) -> BenchmarkResult:
    payload = os.urandom(size_bytes)
    r = transfer_bytes(payload, loss_rate=loss_rate, delay_ms=delay_ms, linger_ms=linger_ms)
    if r.received != payload:
        raise RuntimeError(f"payload mismatch: sent {size_bytes} bytes, received {len(r.received)}")

    duration_s = max(0.001, r.sender.duration_s)
    return BenchmarkResult(
        bytes_transferred=size_bytes,
        duration_s=duration_s,
        throughput_mbps=(size_bytes * 8 / 1_000_000) / duration_s,
        windows=r.sender.windows,
        retransmits=r.sender.retransmits,
        timeouts=r.sender.timeouts,
    )
