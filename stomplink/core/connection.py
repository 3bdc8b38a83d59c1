from __future__ import annotations

import errno
import logging
import queue
import socket
import struct
import sys
from enum import StrEnum
from typing import Dict, Iterator, List, Optional

from stomplink.protocol import validator
from stomplink.protocol.commands import StompCommand
from stomplink.protocol.constants import DEFAULT_TIMEOUT, RECEIVE_CHUNK_SIZE
from stomplink.protocol.errors import ErrorCode, StompConnectionError, StompError, StompIOError
from stomplink.protocol.frame import Frame, Header
from stomplink.settings import DEFAULT_CONNECT_POLICY, DEFAULT_SUBSCRIBE_POLICY, ConnectPolicy, SubscribePolicy

from .receiver import ChannelItem, ReceiveLoop, Terminated

logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    CREATED = "created"
    OPEN = "open"
    AUTHENTICATING = "authenticating"
    SUBSCRIBED = "subscribed"
    CLOSING = "closing"
    CLOSED = "closed"


def _set_write_timeout(sock: socket.socket, timeout: float) -> None:
    # SO_SNDTIMEO bounds writes while reads on the same connection stay blocking.
    if sys.platform == "win32":
        # Winsock takes a DWORD of milliseconds.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDTIMEO, max(1, int(timeout * 1000)))
        return
    seconds = int(timeout)
    microseconds = int((timeout - seconds) * 1_000_000)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDTIMEO, struct.pack("ll", seconds, microseconds))


class Connection:
    """
    One STOMP session over TCP.

    The caller thread writes (authenticate/subscribe); a ReceiveLoop thread
    owns a duplicate of the socket and pushes inbound frames onto `channel`,
    ending with a single Terminated item.
    """

    def __init__(
        self,
        sock: socket.socket,
        host: str,
        *,
        channel: Optional["queue.Queue[ChannelItem]"] = None,
        chunk_size: int = RECEIVE_CHUNK_SIZE,
        unescape: bool = False,
    ) -> None:
        self._sock = sock
        self.host_header = host
        self.channel: "queue.Queue[ChannelItem]" = channel if channel is not None else queue.Queue()
        self.state = ConnectionState.CREATED
        self.termination: Optional[Terminated] = None
        self._subscriptions: Dict[str, str] = {}
        self._receiver = ReceiveLoop(sock.dup(), self.channel, chunk_size, unescape=unescape)

    def start(self) -> None:
        self._receiver.start()
        self.state = ConnectionState.OPEN

    @property
    def subscriptions(self) -> Dict[str, str]:
        """Subscription id -> destination, as sent on this connection."""
        return dict(self._subscriptions)

    @property
    def receiving(self) -> bool:
        return self._receiver.is_alive()

    def authenticate(self, username: str, password: str, policy: ConnectPolicy = DEFAULT_CONNECT_POLICY) -> None:
        """Send CONNECT. The server's CONNECTED/ERROR reply arrives on `channel`."""
        headers: List[Header] = [
            ("accept-version", policy.accept_version),
            ("host", self.host_header),
            ("heart-beat", policy.heart_beat),
            ("login", username),
            ("passcode", password),
        ]
        self._ensure_writable()
        self._send(Frame(command=StompCommand.CONNECT.value, headers=headers))
        self.state = ConnectionState.AUTHENTICATING
        logger.info("Sent CONNECT for %s to %s", username, self.host_header)

    def subscribe(self, identifier: int, destination: str, policy: SubscribePolicy = DEFAULT_SUBSCRIBE_POLICY) -> None:
        sub_id = str(identifier)
        if sub_id in self._subscriptions:
            raise StompError(
                f"Subscription id {sub_id} already used for {self._subscriptions[sub_id]}",
                ErrorCode.DUPLICATE_SUBSCRIPTION,
            )
        headers: List[Header] = [
            ("id", sub_id),
            ("destination", destination),
            ("ack", policy.ack),
        ]
        self._ensure_writable()
        self._send(Frame(command=StompCommand.SUBSCRIBE.value, headers=headers), escape=policy.escape_headers)
        self._subscriptions[sub_id] = destination
        self.state = ConnectionState.SUBSCRIBED
        logger.info("Subscribed %s to %s", sub_id, destination)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the receive loop has exited. Returns False only if `timeout` expired."""
        return self._receiver.join(timeout)

    def close(self) -> None:
        if self.state in (ConnectionState.CLOSED, ConnectionState.CREATED):
            self.state = ConnectionState.CLOSED
            self._receiver.discard()
            self._sock.close()
            return
        self.state = ConnectionState.CLOSING
        self._receiver.request_stop()
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError as exc:
            # Peer already gone; the receive loop has seen or will see EOF.
            if exc.errno != errno.ENOTCONN:
                raise StompIOError(f"Shutdown failed: {exc}") from exc
        finally:
            self._sock.close()
            self.wait()
            self.state = ConnectionState.CLOSED
        logger.info("Connection to %s closed", self.host_header)

    def frames(self, timeout: Optional[float] = None) -> Iterator[Frame]:
        """
        Drain the channel until the receive loop terminates.

        Raises the termination reason when the loop failed, and queue.Empty
        when `timeout` elapses without a new item.
        """
        if self.termination is not None:
            return
        while True:
            item = self.channel.get(timeout=timeout)
            if isinstance(item, Terminated):
                self.termination = item
                if item.reason is not None:
                    raise item.reason
                return
            yield item

    def _ensure_writable(self) -> None:
        if self.state in (ConnectionState.CREATED, ConnectionState.CLOSING, ConnectionState.CLOSED):
            raise StompError(f"Connection is {self.state.value}", ErrorCode.NOT_OPEN)

    def _send(self, frame: Frame, escape: bool = False) -> None:
        validator.validate_frame(frame)
        payload = frame.encode(escape=escape)
        try:
            self._sock.sendall(payload)
        except OSError as exc:
            raise StompIOError(f"Write of {frame.command} failed: {exc}") from exc
        logger.debug("Sent %s frame (%s bytes)", frame.command, len(payload))

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open(
    host: str,
    port: int,
    timeout: Optional[float] = None,
    *,
    channel: Optional["queue.Queue[ChannelItem]"] = None,
    chunk_size: int = RECEIVE_CHUNK_SIZE,
    unescape: bool = False,
) -> Connection:
    """Connect to a STOMP server and start receiving. Raises StompConnectionError."""
    timeout = DEFAULT_TIMEOUT if timeout is None else timeout
    try:
        socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise StompConnectionError(f"Unable to resolve {host}:{port}: {exc}") from exc
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as exc:
        raise StompConnectionError(f"Unable to connect to {host}:{port}: {exc}") from exc

    try:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(None)
        _set_write_timeout(sock, timeout)
        connection = Connection(sock, host, channel=channel, chunk_size=chunk_size, unescape=unescape)
    except OSError as exc:
        sock.close()
        raise StompConnectionError(f"Unable to configure socket for {host}:{port}: {exc}") from exc

    connection.start()
    logger.info("Connected to %s:%s", host, port)
    return connection


__all__ = ["Connection", "ConnectionState", "open"]
