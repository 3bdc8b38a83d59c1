from __future__ import annotations

from stomplink.protocol.errors import ErrorCode, StompError


class ApplicationError(StompError):
    """A frame arrived intact but its payload is not what the feed should send."""

    default_code = ErrorCode.UNEXPECTED_CONTENT


__all__ = ["ApplicationError"]
