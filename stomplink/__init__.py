"""
STOMP client core: wire framing in `stomplink.protocol`, connection and
receive loop in `stomplink.core`.
"""

from .core import Connection, ConnectionState, ReceiveLoop, Terminated, open
from .protocol import Frame, ProtocolError, StompConnectionError, StompError, StompIOError
from .settings import ConnectPolicy, SubscribePolicy

__all__ = [
    "Connection",
    "ConnectionState",
    "ReceiveLoop",
    "Terminated",
    "open",
    "Frame",
    "ProtocolError",
    "StompConnectionError",
    "StompError",
    "StompIOError",
    "ConnectPolicy",
    "SubscribePolicy",
]
