from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .commands import normalize_command
from .constants import CONTENT_LENGTH, CR, ENCODING, HEADER_BLOCK_END, HEADER_SEPARATOR, LF, NUL
from .errors import ErrorCode, MalformedHeaderError, ProtocolError
from .frame import Frame, Header

logger = logging.getLogger(__name__)

Buffer = Union[bytes, bytearray]
Headers = Union[Iterable[Header], Mapping]

_NUL = NUL[0]
_LF = LF[0]
_CR = CR[0]

# STOMP 1.2 header escapes. Backslash must be handled first when escaping.
_ESCAPES = (("\\", "\\\\"), ("\r", "\\r"), ("\n", "\\n"), (":", "\\c"))
_UNESCAPES = {"\\": "\\", "r": "\r", "n": "\n", "c": ":"}


def escape_header(text: str) -> str:
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def unescape_header(text: str) -> str:
    """Reverse `escape_header`. Unknown escape sequences are kept verbatim."""
    if "\\" not in text:
        return text
    out: List[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\" and i + 1 < len(text) and text[i + 1] in _UNESCAPES:
            out.append(_UNESCAPES[text[i + 1]])
            i += 2
            continue
        out.append(char)
        i += 1
    return "".join(out)


def encode_frame(
    command: str,
    headers: Optional[Headers] = None,
    body: Optional[Union[bytes, str]] = None,
    *,
    escape: bool = False,
) -> bytes:
    """
    Serialise a frame: COMMAND LF (name:value LF)* LF body? NUL.

    Headers are written in the given order and nothing is added implicitly,
    so callers supply content-length themselves. Values are written verbatim
    unless `escape` is set.
    """
    if isinstance(headers, Mapping):
        headers = headers.items()
    lines = [normalize_command(command)]
    for name, value in headers or ():
        name, value = str(name), str(value)
        if escape:
            name, value = escape_header(name), escape_header(value)
        lines.append(f"{name}{HEADER_SEPARATOR}{value}")
    head = ("\n".join(lines) + "\n\n").encode(ENCODING)
    if isinstance(body, str):
        body = body.encode(ENCODING)
    return head + (body or b"") + NUL


def _skip_eols(buffer: Buffer, start: int = 0) -> int:
    """Index of the first byte after any heart-beat EOLs."""
    index = start
    while index < len(buffer) and buffer[index] in (_LF, _CR):
        index += 1
    return index


def _parse_headers(block: Buffer, unescape: bool) -> List[Header]:
    headers: List[Header] = []
    for raw_line in block.split(LF):
        if not raw_line:
            continue
        line = raw_line.decode(ENCODING, errors="replace")
        name, sep, value = line.partition(HEADER_SEPARATOR)
        if not sep or not name:
            err = MalformedHeaderError(f"Skipping header line {line!r}")
            logger.warning("%s", err)
            continue
        if unescape:
            name, value = unescape_header(name), unescape_header(value)
        headers.append((name, value))
    return headers


def _declared_length(headers: List[Header]) -> Optional[int]:
    for name, value in headers:
        if name.lower() != CONTENT_LENGTH:
            continue
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise ProtocolError(f"Invalid content-length {value!r}", ErrorCode.BAD_CONTENT_LENGTH)
        return int(text)
    return None


def try_decode(buffer: Buffer, *, unescape: bool = False) -> Optional[Tuple[Frame, int]]:
    """
    Decode the first complete frame in `buffer`.

    Returns ``(frame, consumed)`` where `consumed` counts every byte the frame
    used, including leading heart-beat EOLs, the NUL terminator and one
    optional trailing LF. Returns None when more bytes are needed; nothing is
    consumed in that case and the caller retries from the same offset once the
    buffer has grown. Raises ProtocolError when the stream cannot be framed.
    """
    start = _skip_eols(buffer)
    command_end = buffer.find(LF, start)
    if command_end < 0:
        if buffer.find(NUL, start) >= 0:
            raise ProtocolError("Frame terminated before its command line ended")
        return None

    headers_end = buffer.find(HEADER_BLOCK_END, command_end)
    limit = headers_end if headers_end >= 0 else len(buffer)
    if buffer.find(NUL, start, limit) >= 0:
        raise ProtocolError("Frame terminated before the header/body separator")
    if headers_end < 0:
        return None

    command = buffer[start:command_end].decode(ENCODING, errors="replace").rstrip()
    if not command:
        raise ProtocolError("Frame has an empty command")

    headers = _parse_headers(buffer[command_end + 1 : headers_end], unescape)
    body_start = headers_end + len(HEADER_BLOCK_END)

    length = _declared_length(headers)
    if length is not None:
        body_end = body_start + length
        if len(buffer) <= body_end:
            return None
        if buffer[body_end] != _NUL:
            raise ProtocolError(
                f"Expected NUL after {length} body bytes of {command} frame",
                ErrorCode.MISSING_TERMINATOR,
            )
        body: Optional[bytes] = bytes(buffer[body_start:body_end])
    else:
        body_end = buffer.find(NUL, body_start)
        if body_end < 0:
            return None
        body = bytes(buffer[body_start:body_end]) or None

    consumed = body_end + 1
    if consumed < len(buffer) and buffer[consumed] == _LF:
        consumed += 1
    return Frame(command=command, headers=headers, body=body), consumed


def iter_frames(buffer: bytearray, *, unescape: bool = False) -> Iterator[Frame]:
    """
    Pop every complete frame off the front of `buffer`, in order.

    The consumed prefix is deleted before each frame is yielded, so a partial
    trailing frame is left untouched for the next call.
    """
    while True:
        result = try_decode(buffer, unescape=unescape)
        if result is None:
            break
        frame, consumed = result
        del buffer[:consumed]
        yield frame
    if buffer and _skip_eols(buffer) == len(buffer):
        del buffer[:]


def decode_frames(buffer: bytearray, *, unescape: bool = False) -> List[Frame]:
    return list(iter_frames(buffer, unescape=unescape))


__all__ = [
    "encode_frame",
    "try_decode",
    "iter_frames",
    "decode_frames",
    "escape_header",
    "unescape_header",
]
