"""Protocol-wide constants for the STOMP wire format."""

ENCODING = "utf-8"
NUL = b"\x00"
LF = b"\n"
CR = b"\r"
HEADER_BLOCK_END = b"\n\n"
HEADER_SEPARATOR = ":"

PROTOCOL_VERSION = "1.2"
DEFAULT_HEARTBEAT = "0,0"  # declared, never enforced
DEFAULT_ACK_MODE = "auto"

CONTENT_LENGTH = "content-length"
CONTENT_TYPE = "content-type"

DEFAULT_TIMEOUT = 10.0  # seconds
RECEIVE_CHUNK_SIZE = 4096  # 4 KiB

__all__ = [
    "ENCODING",
    "NUL",
    "LF",
    "CR",
    "HEADER_BLOCK_END",
    "HEADER_SEPARATOR",
    "PROTOCOL_VERSION",
    "DEFAULT_HEARTBEAT",
    "DEFAULT_ACK_MODE",
    "CONTENT_LENGTH",
    "CONTENT_TYPE",
    "DEFAULT_TIMEOUT",
    "RECEIVE_CHUNK_SIZE",
]
