from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .constants import CONTENT_LENGTH, CONTENT_TYPE, ENCODING

Header = Tuple[str, str]


class Frame(BaseModel):
    """
    One STOMP frame: command, ordered headers, optional opaque body.

    Headers keep wire order and repeated names. Lookups by name are
    case-insensitive and the first occurrence wins, as STOMP 1.2 prescribes
    for repeated header entries.
    """

    command: str = Field(..., description="Frame verb such as CONNECT or MESSAGE")
    headers: List[Header] = Field(default_factory=list, description="Ordered (name, value) pairs")
    body: Optional[bytes] = Field(default=None, description="Raw body bytes, never decoded by the core")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return default

    def header_values(self, name: str) -> List[str]:
        """Every value recorded for `name`, in wire order."""
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    def has_header(self, name: str) -> bool:
        return self.header(name) is not None

    @property
    def content_length(self) -> Optional[int]:
        raw = self.header(CONTENT_LENGTH)
        if raw is None:
            return None
        raw = raw.strip()
        if not (raw.isascii() and raw.isdigit()):
            return None
        return int(raw)

    @property
    def content_type(self) -> Optional[str]:
        return self.header(CONTENT_TYPE)

    def text(self, encoding: str = ENCODING, errors: str = "strict") -> Optional[str]:
        """Decode the body as text. Only consumers should call this."""
        if self.body is None:
            return None
        return self.body.decode(encoding, errors)

    def encode(self, *, escape: bool = False) -> bytes:
        from .framing import encode_frame

        return encode_frame(self.command, self.headers, self.body, escape=escape)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into a JSON-friendly dict (first-wins headers, body length only)."""
        headers: Dict[str, str] = {}
        for key, value in self.headers:
            headers.setdefault(key, value)
        return {
            "command": self.command,
            "headers": headers,
            "body_length": None if self.body is None else len(self.body),
        }


__all__ = ["Frame", "Header"]
