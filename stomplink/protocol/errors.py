from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Error codes shared by the protocol core and its consumers."""

    CONNECT_FAILED = 1001
    IO_FAILED = 1002
    MALFORMED_FRAME = 1003
    BAD_CONTENT_LENGTH = 1004
    MISSING_TERMINATOR = 1005
    MALFORMED_HEADER = 1006
    INVALID_FRAME = 1007
    DUPLICATE_SUBSCRIPTION = 1008
    NOT_OPEN = 1009
    UNEXPECTED_CONTENT = 1010
    MISSING_ATTRIBUTE = 1011


class StompError(Exception):
    """Structured exception carrying an error code + message."""

    default_code = ErrorCode.IO_FAILED

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None) -> None:
        self.code = code if code is not None else self.default_code
        self.message = message
        super().__init__(f"{self.code.name} ({int(self.code)}): {message}")

    def to_payload(self) -> dict:
        """Map error into a dict suitable for structured logging."""
        return {
            "error_code": int(self.code),
            "error_name": self.code.name,
            "error_message": self.message,
        }


class StompConnectionError(StompError):
    """Address resolution or connect failure while opening a session."""

    default_code = ErrorCode.CONNECT_FAILED


class StompIOError(StompError):
    """Read/write failure on an established connection."""

    default_code = ErrorCode.IO_FAILED


class ProtocolError(StompError):
    """Malformed frame. The byte stream cannot be resynchronised after one."""

    default_code = ErrorCode.MALFORMED_FRAME


class MalformedHeaderError(StompError):
    """A single header line without a colon or name; the frame still decodes."""

    default_code = ErrorCode.MALFORMED_HEADER


__all__ = [
    "ErrorCode",
    "StompError",
    "StompConnectionError",
    "StompIOError",
    "ProtocolError",
    "MalformedHeaderError",
]
