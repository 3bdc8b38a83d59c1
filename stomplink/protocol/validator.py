from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

import jsonschema

from .commands import StompCommand, normalize_command
from .errors import ErrorCode, ProtocolError
from .frame import Frame

SCHEMA_DIR = Path(__file__).parent / "schemas"

# Mapping command -> schema filename (relative to SCHEMA_DIR)
SCHEMA_REGISTRY: Dict[str, str] = {
    StompCommand.CONNECT.value: "connect.json",
    StompCommand.STOMP.value: "connect.json",
    StompCommand.SUBSCRIBE.value: "subscribe.json",
}


def _schema_path(command: str) -> Optional[Path]:
    filename = SCHEMA_REGISTRY.get(command)
    if not filename:
        return None
    path = SCHEMA_DIR / filename
    return path if path.exists() else None


@lru_cache(maxsize=16)
def load_schema(command: str) -> Optional[dict]:
    """Load JSON schema for command if present."""
    path = _schema_path(normalize_command(command))
    if not path:
        return None
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


def validate_content_length(frame: Frame) -> None:
    """A declared content-length must match the body actually carried."""
    if not frame.has_header("content-length"):
        return
    declared = frame.content_length
    actual = len(frame.body or b"")
    if declared != actual:
        raise ProtocolError(
            f"content-length {frame.header('content-length')!r} does not match body of {actual} bytes",
            ErrorCode.INVALID_FRAME,
        )


def validate_frame(frame: Frame, schema: Optional[dict] = None) -> None:
    """Run outbound checks (content-length + json-schema of the header set)."""
    validate_content_length(frame)
    if not schema:
        schema = load_schema(frame.command)
    if schema:
        try:
            jsonschema.validate(instance=frame.to_dict(), schema=schema)
        except jsonschema.ValidationError as exc:
            raise ProtocolError(
                f"{frame.command} frame failed validation: {exc.message}", ErrorCode.INVALID_FRAME
            ) from exc


__all__ = ["load_schema", "validate_frame", "validate_content_length"]
