from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

from dotenv import load_dotenv

DEFAULT_CONFIG: Dict[str, Any] = {
    "host": "",
    "port": 61613,
    "username": "",
    "password": "",
    "topics": "/topic/darwin.pushport-v16",
    "connect_timeout": 10.0,
    "chunk_size": 4096,
    "log_level": "INFO",
    "db_path": "pushport.db",
    "escape_headers": False,
    "render": True,
}

CLIENT_CONFIG: Dict[str, Any] = DEFAULT_CONFIG.copy()

ENV_PREFIX = "DARWIN_"


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


def load_config(env_path: str = ".env") -> Dict[str, Any]:
    """Load feed configuration from env file/environment variables (DARWIN_HOST, DARWIN_PORT, ...)."""
    if os.path.exists(env_path):
        load_dotenv(env_path)

    for key, default_value in DEFAULT_CONFIG.items():
        env_key = f"{ENV_PREFIX}{key.upper()}"
        value = os.getenv(env_key, default_value)
        CLIENT_CONFIG[key] = _coerce_type(value, type(default_value))

    _validate_config()
    logging.getLogger().setLevel(CLIENT_CONFIG["log_level"])
    return CLIENT_CONFIG


def _coerce_type(value: Any, target_type: type) -> Any:
    if isinstance(value, target_type):
        return value
    try:
        if target_type is bool:
            return str(value).lower() in ("1", "true", "yes", "on")
        return target_type(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Cannot convert {value} to {target_type}") from exc


def _validate_config() -> None:
    for key in ("host", "username", "password"):
        if not CLIENT_CONFIG[key]:
            raise ConfigError(f"{ENV_PREFIX}{key.upper()} must be set")
    if not (1 <= int(CLIENT_CONFIG["port"]) <= 65535):
        raise ConfigError("port must be between 1 and 65535")
    if CLIENT_CONFIG["connect_timeout"] <= 0:
        raise ConfigError("connect_timeout must be positive")
    if CLIENT_CONFIG["chunk_size"] <= 0:
        raise ConfigError("chunk_size must be positive")
    if not topic_list():
        raise ConfigError("at least one topic is required")
    CLIENT_CONFIG["log_level"] = str(CLIENT_CONFIG["log_level"]).upper()


def topic_list() -> List[str]:
    """Configured topics, in subscription order."""
    return [topic.strip() for topic in str(CLIENT_CONFIG["topics"]).split(",") if topic.strip()]


__all__ = ["CLIENT_CONFIG", "DEFAULT_CONFIG", "ConfigError", "load_config", "topic_list"]
