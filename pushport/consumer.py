from __future__ import annotations

import logging
import queue
from typing import List, Optional

from stomplink.core.receiver import ChannelItem, Terminated
from stomplink.protocol.commands import StompCommand, commands_in_group, is_command
from stomplink.protocol.errors import ErrorCode
from stomplink.protocol.frame import Frame

from .document import Document, parse_document, payload_bytes
from .errors import ApplicationError
from .storage import PayloadStore

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = "application/xml"
ROOT_ELEMENT = "Pport"
UPDATE_ELEMENT = "uR"
SERVER_COMMANDS = frozenset(commands_in_group("server"))


def render_node(document: Document, index: int = 0, depth: int = 0) -> List[str]:
    """Indented text rendering of the subtree rooted at `index`."""
    node = document.nodes[index]
    indent = " " * depth
    lines = [f"{indent}<{node.name}>"]
    if node.text:
        lines.append(f"{indent}{node.text}")
    for name, value in node.attributes.items():
        lines.append(f" {indent}{name}: {value}")
    for child in node.children:
        lines.extend(render_node(document, child, depth + 1))
    return lines


def render_frame(frame: Frame) -> List[str]:
    lines = [frame.command]
    lines.extend(f"{name}: {value}" for name, value in frame.headers)
    lines.append("")
    if frame.body is not None:
        lines.append(frame.text(errors="replace"))
    return lines


class FrameConsumer:
    """Interprets frames from the receive loop: checks, decodes, stores and renders push-port messages."""

    def __init__(self, store: Optional[PayloadStore] = None, render: bool = True) -> None:
        self.store = store
        self.render = render
        self.handled = 0
        self.failures = 0

    def handle(self, frame: Frame) -> Optional[Document]:
        if frame.command == StompCommand.CONNECTED:
            logger.info(
                "Session established (version=%s, server=%s)",
                frame.header("version", "?"),
                frame.header("server", "?"),
            )
            return None
        if frame.command == StompCommand.MESSAGE and frame.body is not None:
            return self._handle_message(frame)
        if not is_command(frame.command):
            logger.warning("Unrecognised %s frame", frame.command)
        elif frame.command not in SERVER_COMMANDS:
            logger.warning("Client-only %s frame received from server", frame.command)
        for line in render_frame(frame):
            logger.warning("%s", line)
        return None

    def _handle_message(self, frame: Frame) -> Document:
        content_type = (frame.content_type or "").split(";", 1)[0].strip().lower()
        if content_type != XML_CONTENT_TYPE:
            raise ApplicationError(f"Unexpected content-type {frame.content_type!r}", ErrorCode.UNEXPECTED_CONTENT)

        document = parse_document(payload_bytes(frame))
        root = document.root
        if root.name != ROOT_ELEMENT:
            raise ApplicationError(f"Unexpected root element <{root.name}>", ErrorCode.UNEXPECTED_CONTENT)
        ts = root.attributes.get("ts")
        if not ts:
            raise ApplicationError(f"<{ROOT_ELEMENT}> has no ts attribute", ErrorCode.MISSING_ATTRIBUTE)

        if self.store is not None:
            self.store.save(ts, frame.body or b"", frame.header("destination"), frame.header("message-id"))
        if self.render:
            self._render_update(document, ts)
        return document

    def _render_update(self, document: Document, ts: str) -> None:
        logger.info("@ %s", ts)
        update = document.find_child(0, UPDATE_ELEMENT)
        if update is None:
            for line in render_node(document):
                logger.info("%s", line)
            return
        for child in document.nodes[update].children:
            for line in render_node(document, child):
                logger.info("%s", line)

    def run(self, channel: "queue.Queue[ChannelItem]") -> Terminated:
        """Drain `channel` until the receive loop reports termination."""
        while True:
            item = channel.get()
            if isinstance(item, Terminated):
                if item.ok:
                    logger.info("Feed ended after %s frames", self.handled)
                else:
                    logger.error("Feed failed after %s frames: %s", self.handled, item.reason.to_payload())
                return item
            try:
                self.handle(item)
            except ApplicationError as exc:
                self.failures += 1
                logger.warning("Skipping %s frame: %s", item.command, exc.to_payload())
            finally:
                self.handled += 1


__all__ = ["FrameConsumer", "render_frame", "render_node", "XML_CONTENT_TYPE"]
