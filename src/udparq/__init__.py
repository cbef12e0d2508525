"""UDP ARQ file transfer.

One file, one window of ten 500-byte packets in flight at a time, every
packet acknowledged individually. Layout:

- packet framing (``packet``) and sequence numbering (``seqspace``)
- per-window state machines (``sender``, ``receiver``)
- whole-file sessions that own the socket and the file (``session``)
"""

from .errors import (
    FileAccessError,
    PeerUnresponsiveError,
    SocketSetupError,
    TransferError,
    TransportIOError,
    TruncatedPacketError,
)
from .session import receive_file, send_file

__all__ = [
    "FileAccessError",
    "PeerUnresponsiveError",
    "SocketSetupError",
    "TransferError",
    "TransportIOError",
    "TruncatedPacketError",
    "receive_file",
    "send_file",
]
