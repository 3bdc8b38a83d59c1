from __future__ import annotations

from dataclasses import dataclass

from stomplink.protocol.constants import DEFAULT_ACK_MODE, DEFAULT_HEARTBEAT, PROTOCOL_VERSION


@dataclass(frozen=True)
class ConnectPolicy:
    """Header values written into CONNECT besides host and credentials."""

    accept_version: str = PROTOCOL_VERSION
    heart_beat: str = DEFAULT_HEARTBEAT


@dataclass(frozen=True)
class SubscribePolicy:
    """Header values written into SUBSCRIBE besides id and destination."""

    ack: str = DEFAULT_ACK_MODE
    escape_headers: bool = False


DEFAULT_CONNECT_POLICY = ConnectPolicy()
DEFAULT_SUBSCRIBE_POLICY = SubscribePolicy()


__all__ = ["ConnectPolicy", "SubscribePolicy", "DEFAULT_CONNECT_POLICY", "DEFAULT_SUBSCRIBE_POLICY"]
