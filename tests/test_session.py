from __future__ import annotations

import io
import os
import threading

import pytest

from udparq.bench import transfer_bytes
from udparq.errors import FileAccessError, PeerUnresponsiveError
from udparq.net import UdpEndpoint
from udparq.packet import AckPacket, DataPacket
from udparq.session import ReceiverSession, SenderSession, receive_file, send_file

from fakes import PEER, AckingPeer, ScriptedEndpoint, data


def send_through_peer(payload):
    peer = AckingPeer()
    progress = []
    session = SenderSession(peer, PEER, io.BytesIO(payload), on_progress=progress.append)
    metrics = session.run()
    return peer, session, metrics, progress


def test_sender_splits_5500_bytes_into_two_windows():
    payload = os.urandom(5500)
    peer, session, metrics, progress = send_through_peer(payload)
    assert peer.seqs == list(range(11))
    assert [p.eof for p in peer.transmissions] == [False] * 10 + [True]
    assert len(peer.transmissions[10].payload) == 500
    assert metrics.windows == 2
    assert progress == [5000, 5500]
    assert session.base == 20
    assert session.eof_reached is True


def test_sender_flags_eof_on_exact_window_boundary():
    peer, _, metrics, _ = send_through_peer(b"w" * 5000)
    assert peer.seqs == list(range(10))
    assert peer.transmissions[-1].eof is True
    assert metrics.windows == 1


def test_sender_empty_file():
    peer, session, metrics, progress = send_through_peer(b"")
    assert peer.transmissions == [DataPacket(seq=0, eof=True, payload=b"")]
    assert progress == []
    assert session.bytes_transferred == 0
    assert metrics.windows == 1


def test_sender_wraps_sequence_base():
    payload = os.urandom(12 * 5000 + 1)
    peer, _, metrics, _ = send_through_peer(payload)
    seqs = peer.seqs
    assert seqs[100:110] == list(range(100, 110))
    assert seqs[110:120] == list(range(10))
    assert seqs[120:] == [10]
    assert metrics.windows == 13
    assert b"".join(p.payload for p in peer.transmissions) == payload


def test_receiver_session_writes_windows_in_order():
    payload = os.urandom(5500)
    script = [data(s, payload[s * 500 : (s + 1) * 500]) for s in range(10)]
    # retransmission of the previous window arrives while the next is open
    script += [data(9, payload[4500:5000]), data(10, payload[5000:], eof=True)]
    ep = ScriptedEndpoint(script)
    out = io.BytesIO()
    session = ReceiverSession(ep, out)
    metrics = session.run()
    assert out.getvalue() == payload
    assert metrics.windows == 2
    assert metrics.bytes_transferred == 5500
    assert [AckPacket.from_bytes(d).seq for d, _ in ep.sent] == list(range(10)) + [9, 10]
    assert session.base == 20


def test_receiver_session_empty_file():
    ep = ScriptedEndpoint([data(0, b"", eof=True)])
    out = io.BytesIO()
    metrics = ReceiverSession(ep, out).run()
    assert out.getvalue() == b""
    assert metrics.windows == 1


@pytest.mark.parametrize("size", [0, 1, 499, 500, 5000, 5500, 12_345])
def test_loopback_transfer_is_byte_identical(size):
    payload = os.urandom(size)
    r = transfer_bytes(payload, linger_ms=0)
    assert r.received == payload
    assert r.receiver.bytes_transferred == size


def test_loopback_transfer_across_wraparound():
    payload = os.urandom(13 * 5000 - 7)
    r = transfer_bytes(payload, linger_ms=0)
    assert r.received == payload
    assert r.sender.windows == 13
    assert r.receiver.windows == 13


def test_loopback_transfer_with_loss():
    payload = os.urandom(20_000)
    r = transfer_bytes(payload, loss_rate=0.1, linger_ms=500)
    assert r.received == payload


def test_send_file_missing_source(tmp_path):
    with pytest.raises(FileAccessError):
        send_file(str(tmp_path / "missing.bin"), 9)


def test_receive_file_bad_destination(tmp_path):
    with pytest.raises(FileAccessError):
        receive_file(str(tmp_path / "no" / "such" / "dir.bin"), 0, "127.0.0.1")


def test_send_file_to_silent_peer(tmp_path):
    src = tmp_path / "src.bin"
    src.write_bytes(b"hello")
    with UdpEndpoint.listening("127.0.0.1", 0) as silent:
        port = silent.address[1]
        with pytest.raises(PeerUnresponsiveError):
            send_file(str(src), port, "127.0.0.1", timeout_ms=10, max_timeouts=3)


def test_send_and_receive_files(tmp_path):
    src = tmp_path / "src.bin"
    dst = tmp_path / "dst.bin"
    payload = os.urandom(7777)
    src.write_bytes(payload)

    with UdpEndpoint.listening("127.0.0.1", 0) as probe:
        port = probe.address[1]

    results = {}
    t = threading.Thread(
        target=lambda: results.setdefault("m", receive_file(str(dst), port, "127.0.0.1")),
        daemon=True,
    )
    t.start()
    # the receiver may not be bound yet; the sender's retransmissions cover that
    metrics = send_file(str(src), port, "127.0.0.1")
    t.join(timeout=10)
    assert not t.is_alive()
    assert dst.read_bytes() == payload
    assert metrics.bytes_transferred == 7777
    assert results["m"].bytes_transferred == 7777


def test_failed_loopback_transfer_releases_receiver():
    before = threading.active_count()
    with pytest.raises(PeerUnresponsiveError):
        transfer_bytes(b"x" * 10, loss_rate=1.0, timeout_ms=10, max_timeouts=2)
    assert threading.active_count() == before
