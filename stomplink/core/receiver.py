from __future__ import annotations

import logging
import queue
import socket
import threading
from dataclasses import dataclass
from typing import Optional, Union

from stomplink.protocol.constants import RECEIVE_CHUNK_SIZE
from stomplink.protocol.errors import ProtocolError, StompError, StompIOError
from stomplink.protocol.frame import Frame
from stomplink.protocol.framing import iter_frames

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Terminated:
    """Last item the receive loop puts on its channel. `reason` is None on orderly shutdown."""

    reason: Optional[StompError] = None

    @property
    def ok(self) -> bool:
        return self.reason is None


ChannelItem = Union[Frame, Terminated]


class ReceiveLoop:
    """Background reader: socket bytes -> decoded frames -> channel, in wire order."""

    def __init__(
        self,
        sock: socket.socket,
        channel: "queue.Queue[ChannelItem]",
        chunk_size: int = RECEIVE_CHUNK_SIZE,
        *,
        unescape: bool = False,
    ) -> None:
        self._sock = sock
        self.channel = channel
        self.chunk_size = chunk_size
        self.unescape = unescape
        self.frames_received = 0
        self._pending = bytearray()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def started(self) -> bool:
        return self._thread is not None

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is None:
            self._thread = threading.Thread(target=self._run, name="stomp-recv", daemon=True)
            self._thread.start()

    def request_stop(self) -> None:
        """Mark the next read failure as a local shutdown rather than an error."""
        self._stopping.set()

    def discard(self) -> None:
        """Release the socket of a loop that was never started."""
        if self._thread is None:
            self._sock.close()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop to exit. Returns False if it is still running."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        reason: Optional[StompError] = None
        try:
            self._receive()
        except ProtocolError as exc:
            logger.error("Unrecoverable frame on stream: %s", exc.to_payload())
            reason = exc
        except OSError as exc:
            if self._stopping.is_set():
                logger.debug("Receive loop stopped during local shutdown: %s", exc)
            else:
                reason = StompIOError(f"Read failed: {exc}")
                logger.error("Receive loop terminated: %s", reason.to_payload())
        except Exception as exc:
            logger.exception("Receive loop crashed: %s", exc)
            reason = StompError(f"Receive loop crashed: {exc}")
        finally:
            if self._pending:
                logger.debug("Discarding %s unparsed bytes", len(self._pending))
            try:
                self._sock.close()
            except OSError as e:
                logger.debug("Error closing receive socket: %s", e)
            self.channel.put(Terminated(reason))

    def _receive(self) -> None:
        while True:
            chunk = self._sock.recv(self.chunk_size)
            if not chunk:
                logger.info("Server closed the connection")
                return
            self._pending.extend(chunk)
            for frame in iter_frames(self._pending, unescape=self.unescape):
                self.frames_received += 1
                logger.debug("Received %s frame (%s headers)", frame.command, len(frame.headers))
                self.channel.put(frame)


__all__ = ["ReceiveLoop", "Terminated", "ChannelItem"]
