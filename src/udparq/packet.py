from __future__ import annotations

import struct
from dataclasses import dataclass

from .constants import ACK_SIZE, HEADER_SIZE, PAYLOAD_SIZE, SEQ_LIMIT
from .errors import TruncatedPacketError

HEADER = struct.Struct("!BB")  # seq, eof flag
ACK = struct.Struct("!B")  # echoed seq


def _check_seq(seq: int) -> None:
    if not 0 <= seq < SEQ_LIMIT:
        raise ValueError(f"sequence number out of range: {seq}")


@dataclass(frozen=True, slots=True)
class DataPacket:
    seq: int
    eof: bool = False
    payload: bytes = b""

    def to_bytes(self) -> bytes:
        _check_seq(self.seq)
        if len(self.payload) > PAYLOAD_SIZE:
            raise ValueError(f"payload too large: {len(self.payload)}")
        return HEADER.pack(self.seq, 1 if self.eof else 0) + self.payload

    @staticmethod
    def from_bytes(raw: bytes) -> "DataPacket":
        if len(raw) < HEADER_SIZE:
            raise TruncatedPacketError(
                f"data packet needs {HEADER_SIZE} header bytes, got {len(raw)}"
            )
        seq, flag = HEADER.unpack_from(raw)
        return DataPacket(seq=seq, eof=flag != 0, payload=bytes(raw[HEADER_SIZE:]))


@dataclass(frozen=True, slots=True)
class AckPacket:
    seq: int

    def to_bytes(self) -> bytes:
        _check_seq(self.seq)
        return ACK.pack(self.seq)

    @staticmethod
    def from_bytes(raw: bytes) -> "AckPacket":
        if len(raw) < ACK_SIZE:
            raise TruncatedPacketError("empty ack datagram")
        (seq,) = ACK.unpack_from(raw)
        return AckPacket(seq=seq)
