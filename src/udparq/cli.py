from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Callable, Optional

from .bench import run_benchmark
from .constants import (
    ACK_TIMEOUT_MS,
    DEFAULT_LINGER_MS,
    DEFAULT_LISTEN_HOST,
    DEFAULT_REMOTE_HOST,
    MAX_TIMEOUTS,
)
from .errors import TransferError
from .net import Impairment
from .receiver import Metrics
from .session import receive_file, send_file

logger = logging.getLogger("udparq")


def progress_printer(label: str, quiet: bool) -> Optional[Callable[[int], None]]:
    if quiet:
        return None

    def show(nbytes: int) -> None:
        sys.stdout.write(f"\r{' ' * 50}\r{label}: {nbytes} bytes")
        sys.stdout.flush()

    show(0)
    return show


def report(role: str, metrics: Metrics, args: argparse.Namespace) -> None:
    payload = {
        "role": role,
        "bytes": metrics.bytes_transferred,
        "windows": metrics.windows,
        "seconds": metrics.duration_s,
        "mbps": metrics.throughput_mbps,
        "timeouts": metrics.timeouts,
        "retransmits": metrics.retransmits,
    }
    if not args.quiet:
        print()
    if args.json:
        print(json.dumps(payload, indent=2))
    print("Success.")


def cmd_sender(args: argparse.Namespace) -> int:
    metrics = send_file(
        args.filename,
        args.port,
        args.host,
        impairment=Impairment(args.loss_rate, args.delay_ms),
        timeout_ms=args.timeout_ms,
        max_timeouts=args.max_timeouts,
        on_progress=progress_printer("Sent", args.quiet),
    )
    report("sender", metrics, args)
    return 0


def cmd_receiver(args: argparse.Namespace) -> int:
    metrics = receive_file(
        args.filename,
        args.port,
        args.listen_host,
        impairment=Impairment(args.loss_rate, args.delay_ms),
        linger_ms=args.linger_ms,
        on_progress=progress_printer("Received", args.quiet),
    )
    report("receiver", metrics, args)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
        linger_ms=args.linger_ms,
    )
    payload = {"role": "bench", **asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="udparq", description="Sliding-window ARQ file transfer over UDP.")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--loss-rate", type=float, default=0.0, help="simulate datagram loss")
        x.add_argument("--delay-ms", type=int, default=0, help="simulate per-datagram delay")
        x.add_argument("--json", action="store_true")
        x.add_argument("-q", "--quiet", action="store_true", help="no progress counter")

    send = sub.add_parser("sender", help="send a file to a receiver")
    add_common(send)
    send.add_argument("filename")
    send.add_argument("port", type=int)
    send.add_argument("--host", default=DEFAULT_REMOTE_HOST)
    send.add_argument("--timeout-ms", type=int, default=ACK_TIMEOUT_MS)
    send.add_argument("--max-timeouts", type=int, default=MAX_TIMEOUTS)
    send.set_defaults(func=cmd_sender)

    recv = sub.add_parser("receiver", help="receive a file and write it to disk")
    add_common(recv)
    recv.add_argument("filename")
    recv.add_argument("port", type=int)
    recv.add_argument("--listen-host", default=DEFAULT_LISTEN_HOST)
    recv.add_argument("--linger-ms", type=int, default=DEFAULT_LINGER_MS, help="re-ack retransmissions this long after EOF")
    recv.set_defaults(func=cmd_receiver)

    bench = sub.add_parser("bench", help="loopback transfer of random bytes")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=1_000_000)
    bench.add_argument("--linger-ms", type=int, default=500)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except TransferError as e:
        if not getattr(args, "quiet", False):
            print()
        logger.error("%s", e)
        return 1


def sender_main(argv: list[str] | None = None) -> int:
    return main(["sender", *(sys.argv[1:] if argv is None else argv)])


def receiver_main(argv: list[str] | None = None) -> int:
    return main(["receiver", *(sys.argv[1:] if argv is None else argv)])


if __name__ == "__main__":
    raise SystemExit(main())
