"""
Push-port payload decoding.

Message bodies are XML, optionally gzip compressed. The parsed element tree
is stored as an arena: every element is a `Node` in `Document.nodes` and
refers to its children and parent by index.
"""
from __future__ import annotations

import gzip
import re
import xml.etree.ElementTree as ET
import zlib
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from stomplink.protocol.constants import ENCODING
from stomplink.protocol.errors import ErrorCode
from stomplink.protocol.frame import Frame

from .errors import ApplicationError

GZIP_MAGIC = b"\x1f\x8b"

_DECLARATION = re.compile(rb"^\s*<\?xml\s+(?P<attrs>.*?)\?>", re.DOTALL)
_DECLARATION_ATTR = re.compile(rb"""(\w+)\s*=\s*["']([^"']*)["']""")


@dataclass
class XmlDeclaration:
    version: str = "1.0"
    encoding: str = "UTF-8"
    standalone: Optional[bool] = None


@dataclass
class Node:
    name: str
    attributes: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None
    children: List[int] = field(default_factory=list)
    parent: Optional[int] = None


@dataclass
class Document:
    declaration: XmlDeclaration = field(default_factory=XmlDeclaration)
    nodes: List[Node] = field(default_factory=list)

    @property
    def root(self) -> Node:
        return self.nodes[0]

    def children_of(self, index: int) -> List[Node]:
        return [self.nodes[child] for child in self.nodes[index].children]

    def find_child(self, index: int, name: str) -> Optional[int]:
        """Index of the first child of `index` called `name`."""
        for child in self.nodes[index].children:
            if self.nodes[child].name == name:
                return child
        return None

    def walk(self, start: int = 0) -> Iterator[Tuple[int, int]]:
        """Depth-first (depth, index) pairs in document order."""
        stack = [(0, start)]
        while stack:
            depth, index = stack.pop()
            yield depth, index
            for child in reversed(self.nodes[index].children):
                stack.append((depth + 1, child))


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def payload_bytes(frame: Frame) -> bytes:
    """Body bytes with gzip compression removed."""
    body = frame.body or b""
    if body[:2] == GZIP_MAGIC:
        try:
            return gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as exc:
            raise ApplicationError(f"Corrupt gzip body: {exc}", ErrorCode.UNEXPECTED_CONTENT) from exc
    return body


def parse_declaration(data: bytes) -> XmlDeclaration:
    declaration = XmlDeclaration()
    match = _DECLARATION.match(data)
    if not match:
        return declaration
    attrs = {
        key.decode("ascii").lower(): value.decode("ascii", errors="replace")
        for key, value in _DECLARATION_ATTR.findall(match.group("attrs"))
    }
    declaration.version = attrs.get("version", declaration.version)
    declaration.encoding = attrs.get("encoding", declaration.encoding)
    if "standalone" in attrs:
        declaration.standalone = attrs["standalone"].lower() == "yes"
    return declaration


def parse_document(data: Union[bytes, str]) -> Document:
    if isinstance(data, str):
        data = data.encode(ENCODING)
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ApplicationError(f"Invalid XML payload: {exc}", ErrorCode.UNEXPECTED_CONTENT) from exc

    document = Document(declaration=parse_declaration(data))
    _append(document, root, None)
    return document


def _append(document: Document, element: ET.Element, parent: Optional[int]) -> None:
    index = len(document.nodes)
    text = (element.text or "").strip() or None
    attributes = {_local_name(key): value for key, value in element.attrib.items()}
    document.nodes.append(Node(name=_local_name(element.tag), attributes=attributes, text=text, parent=parent))
    if parent is not None:
        document.nodes[parent].children.append(index)
    for child in element:
        _append(document, child, index)


__all__ = [
    "Document",
    "Node",
    "XmlDeclaration",
    "GZIP_MAGIC",
    "payload_bytes",
    "parse_declaration",
    "parse_document",
]
