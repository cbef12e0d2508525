from __future__ import annotations

HEADER_SIZE = 2  # seq, eof flag
PAYLOAD_SIZE = 500
PACKET_SIZE = HEADER_SIZE + PAYLOAD_SIZE
ACK_SIZE = 1

SEQ_LIMIT = 256  # one byte on the wire

WINDOW_SIZE = 10
MAX_BASE = 100

ACK_TIMEOUT_MS = 100
MAX_TIMEOUTS = 100  # ~10 s of silence at ACK_TIMEOUT_MS

DEFAULT_REMOTE_HOST = "127.0.0.1"
DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LINGER_MS = 0
