from __future__ import annotations

from enum import StrEnum
from typing import Dict, Iterable, Union


class StompCommand(StrEnum):
    """
    STOMP 1.2 frame commands.
    Only CONNECT and SUBSCRIBE are ever sent by this client; the rest are listed
    so inbound frames can be recognised.
    """

    # Client frames
    CONNECT = "CONNECT"
    STOMP = "STOMP"
    SEND = "SEND"
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"
    ACK = "ACK"
    NACK = "NACK"
    BEGIN = "BEGIN"
    COMMIT = "COMMIT"
    ABORT = "ABORT"
    DISCONNECT = "DISCONNECT"

    # Server frames
    CONNECTED = "CONNECTED"
    MESSAGE = "MESSAGE"
    RECEIPT = "RECEIPT"
    ERROR = "ERROR"


COMMAND_GROUPS: Dict[str, str] = {
    StompCommand.CONNECT.value: "client",
    StompCommand.STOMP.value: "client",
    StompCommand.SEND.value: "client",
    StompCommand.SUBSCRIBE.value: "client",
    StompCommand.UNSUBSCRIBE.value: "client",
    StompCommand.ACK.value: "client",
    StompCommand.NACK.value: "client",
    StompCommand.BEGIN.value: "client",
    StompCommand.COMMIT.value: "client",
    StompCommand.ABORT.value: "client",
    StompCommand.DISCONNECT.value: "client",
    StompCommand.CONNECTED.value: "server",
    StompCommand.MESSAGE.value: "server",
    StompCommand.RECEIPT.value: "server",
    StompCommand.ERROR.value: "server",
}


def normalize_command(command: Union[str, StompCommand]) -> str:
    """Convert enum/string into canonical command text."""
    return command.value if isinstance(command, StompCommand) else str(command)


def is_command(value: str) -> bool:
    """Check if `value` is a known command."""
    try:
        StompCommand(value)
        return True
    except ValueError:
        return False


def commands_in_group(group: str) -> Iterable[str]:
    """Yield commands sent by the given side ("client" or "server")."""
    for command, grp in COMMAND_GROUPS.items():
        if grp == group:
            yield command


__all__ = [
    "StompCommand",
    "COMMAND_GROUPS",
    "normalize_command",
    "is_command",
    "commands_in_group",
]
