from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import SocketSetupError, TransportIOError

logger = logging.getLogger(__name__)

Address = Tuple[str, int]
Datagram = Tuple[bytes, Address]


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @staticmethod
    def _open(timeout_ms: int) -> socket.socket:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as e:
            raise SocketSetupError(f"could not open socket: {e}") from e
        try:
            # 0 means block until a datagram arrives
            sock.settimeout(timeout_ms / 1000.0 if timeout_ms > 0 else None)
        except OSError as e:
            sock.close()
            raise SocketSetupError(f"could not set receive timeout: {e}") from e
        return sock

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = cls._open(timeout_ms)
        try:
            sock.bind((host, port))
        except (OSError, OverflowError) as e:
            sock.close()
            raise SocketSetupError(f"could not bind {host}:{port}: {e}") from e
        return cls(sock, impairment)

    @classmethod
    def sending(
        cls,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        return cls(cls._open(timeout_ms), impairment)

    @property
    def address(self) -> Address:
        return self.sock.getsockname()

    def set_timeout(self, timeout_ms: int) -> None:
        self.sock.settimeout(timeout_ms / 1000.0 if timeout_ms > 0 else None)

    def sendto(self, data: bytes, addr: Address) -> None:
        if self.impairment.should_drop():
            logger.debug("dropped outbound %d bytes", len(data))
            return
        self.impairment.sleep_if_needed()
        try:
            self.sock.sendto(data, addr)
        except (OSError, OverflowError) as e:
            raise TransportIOError(f"sendto {addr[0]}:{addr[1]} failed: {e}") from e

    def receive(self, bufsize: int = 65535) -> Optional[Datagram]:
        # None means the receive timeout expired
        while True:
            try:
                data, addr = self.sock.recvfrom(bufsize)
            except socket.timeout:
                return None
            except OSError as e:
                raise TransportIOError(f"recvfrom failed: {e}") from e
            if self.impairment.should_drop():
                logger.debug("dropped inbound %d bytes", len(data))
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def close(self) -> None:
        self.sock.close()

    def abort(self) -> None:
        # wakes a reader blocked in recvfrom; unconnected UDP reports ENOTCONN but still wakes it
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.close()

    def __enter__(self) -> "UdpEndpoint":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
