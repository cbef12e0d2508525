from __future__ import annotations

import pytest

from udparq.seqspace import SequenceSpace, WindowBuffer


def test_advance_wraps_after_max_base():
    space = SequenceSpace()
    base = 0
    seen = []
    for _ in range(12):
        seen.append(base)
        base = space.advance(base)
    assert seen == [0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100, 0]


def test_in_window_bounds():
    space = SequenceSpace()
    assert space.in_window(20, 20)
    assert space.in_window(29, 20)
    assert not space.in_window(19, 20)
    assert not space.in_window(30, 20)


def test_slots_match_after_wraparound():
    space = SequenceSpace()
    before = [space.slot(s) for s in range(0, 10)]
    at_max = [space.slot(s) for s in range(100, 110)]
    after = [space.slot(s) for s in range(0, 10)]
    assert before == at_max == after == list(range(10))


def test_last_window_before_wrap_is_stale_after_wrap():
    space = SequenceSpace()
    assert all(space.in_window(s, 100) for s in range(100, 110))
    assert not any(space.in_window(s, 0) for s in range(100, 110))


@pytest.mark.parametrize(
    "window_size,max_base",
    [(0, 100), (10, 95), (10, 250), (16, 256)],
)
def test_rejects_bad_configuration(window_size, max_base):
    with pytest.raises(ValueError):
        SequenceSpace(window_size=window_size, max_base=max_base)


def test_accepts_largest_one_byte_space():
    space = SequenceSpace(window_size=16, max_base=240)
    assert space.advance(240) == 0


def test_buffer_places_payload_by_slot():
    buf = WindowBuffer(slots=3, slot_size=4)
    buf.put(2, b"cc")
    buf.put(0, b"aaaa")
    buf.put(1, b"bbbb")
    assert bytes(buf.view(10)) == b"aaaabbbbcc"


def test_buffer_bounds():
    buf = WindowBuffer(slots=3, slot_size=4)
    with pytest.raises(IndexError):
        buf.put(3, b"x")
    with pytest.raises(ValueError):
        buf.put(0, b"12345")
    with pytest.raises(ValueError):
        buf.view(13)
    assert buf.capacity == 12


def test_buffer_reset_keeps_capacity():
    buf = WindowBuffer()
    buf.put(9, b"\xff" * 500)
    buf.reset()
    assert buf.capacity == 5000
    assert bytes(buf.view(5000)) == bytes(5000)
