from __future__ import annotations

from dataclasses import dataclass

from .constants import MAX_BASE, PAYLOAD_SIZE, SEQ_LIMIT, WINDOW_SIZE


@dataclass(frozen=True, slots=True)
class SequenceSpace:
    window_size: int = WINDOW_SIZE
    max_base: int = MAX_BASE

    def __post_init__(self) -> None:
        if self.window_size < 1:
            raise ValueError(f"window size must be positive, got {self.window_size}")
        if self.max_base < 0 or self.max_base % self.window_size != 0:
            raise ValueError(
                f"max base {self.max_base} is not a multiple of window size {self.window_size}"
            )
        # highest seq in flight is max_base + window_size - 1; it must fit in one byte
        if self.max_base + self.window_size > SEQ_LIMIT:
            raise ValueError(
                f"sequence numbers up to {self.max_base + self.window_size - 1} "
                f"do not fit in one byte"
            )

    def advance(self, base: int) -> int:
        return 0 if base == self.max_base else base + self.window_size

    def slot(self, seq: int) -> int:
        return seq % self.window_size

    def in_window(self, seq: int, base: int) -> bool:
        return base <= seq <= base + self.window_size - 1


class WindowBuffer:
    # fixed-size arena; payload for slot i lives at i * slot_size
    def __init__(self, slots: int = WINDOW_SIZE, slot_size: int = PAYLOAD_SIZE):
        self.slots = slots
        self.slot_size = slot_size
        self._buf = bytearray(slots * slot_size)

    @property
    def capacity(self) -> int:
        return len(self._buf)

    def put(self, slot: int, payload: bytes) -> None:
        if not 0 <= slot < self.slots:
            raise IndexError(f"slot {slot} outside window of {self.slots}")
        if len(payload) > self.slot_size:
            raise ValueError(f"payload of {len(payload)} bytes exceeds slot size {self.slot_size}")
        start = slot * self.slot_size
        self._buf[start : start + len(payload)] = payload

    def view(self, nbytes: int) -> memoryview:
        if not 0 <= nbytes <= self.capacity:
            raise ValueError(f"cannot view {nbytes} bytes of a {self.capacity}-byte window")
        return memoryview(self._buf)[:nbytes]

    def reset(self) -> None:
        self._buf[:] = bytes(self.capacity)
