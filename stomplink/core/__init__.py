from .connection import Connection, ConnectionState, open
from .receiver import ChannelItem, ReceiveLoop, Terminated

__all__ = ["Connection", "ConnectionState", "open", "ReceiveLoop", "Terminated", "ChannelItem"]
