from __future__ import annotations


class TransferError(Exception):
    """Base class for every fatal transfer failure."""


class SocketSetupError(TransferError):
    pass


class FileAccessError(TransferError):
    pass


class TransportIOError(TransferError):
    pass


class PeerUnresponsiveError(TransferError):
    pass


class TruncatedPacketError(TransferError, ValueError):
    pass
