"""
STOMP protocol package: frame model, wire encoder/decoder, command names,
error types and outbound frame validation.
"""

from .commands import StompCommand, commands_in_group, is_command, normalize_command
from .constants import (
    CONTENT_LENGTH,
    CONTENT_TYPE,
    DEFAULT_ACK_MODE,
    DEFAULT_HEARTBEAT,
    ENCODING,
    NUL,
    PROTOCOL_VERSION,
)
from .errors import (
    ErrorCode,
    MalformedHeaderError,
    ProtocolError,
    StompConnectionError,
    StompError,
    StompIOError,
)
from .frame import Frame, Header
from .framing import decode_frames, encode_frame, escape_header, iter_frames, try_decode, unescape_header
from .validator import load_schema, validate_content_length, validate_frame

__all__ = [
    "StompCommand",
    "commands_in_group",
    "is_command",
    "normalize_command",
    "CONTENT_LENGTH",
    "CONTENT_TYPE",
    "DEFAULT_ACK_MODE",
    "DEFAULT_HEARTBEAT",
    "ENCODING",
    "NUL",
    "PROTOCOL_VERSION",
    "ErrorCode",
    "MalformedHeaderError",
    "ProtocolError",
    "StompConnectionError",
    "StompError",
    "StompIOError",
    "Frame",
    "Header",
    "encode_frame",
    "try_decode",
    "iter_frames",
    "decode_frames",
    "escape_header",
    "unescape_header",
    "load_schema",
    "validate_frame",
    "validate_content_length",
]
