"""
Darwin push-port consumer built on the stomplink core: configuration,
payload decoding, persistence and rendering of received frames.
"""

from .config import CLIENT_CONFIG, ConfigError, load_config
from .consumer import FrameConsumer
from .document import Document, Node, parse_document, payload_bytes
from .errors import ApplicationError
from .storage import PayloadStore

__all__ = [
    "CLIENT_CONFIG",
    "ConfigError",
    "load_config",
    "FrameConsumer",
    "Document",
    "Node",
    "parse_document",
    "payload_bytes",
    "ApplicationError",
    "PayloadStore",
]
