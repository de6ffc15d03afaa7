"""Client configuration.

Precedence, lowest to highest:
1. Defaults below
2. YAML file (keys mirror the field names)
3. Environment: CHATROOM_SERVER_URL, CHATROOM_DOWNLOADS_DIR,
   CHATROOM_CHUNK_SIZE, CHATROOM_CONNECT_TIMEOUT, CHATROOM_LOG_LEVEL
4. Command line flags (applied by the CLI)

Example chatroom.yaml:
    server_url: ws://chat.example.com:5106/ws
    downloads_dir: ~/Downloads/chatroom
    log_level: INFO
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "ws://localhost:5106/ws"
ENV_PREFIX = "CHATROOM_"


class ConfigError(ValueError):
    """Raised for an unreadable or invalid configuration."""


@dataclass
class ClientConfig:
    """Settings for one client process."""

    server_url: str = DEFAULT_SERVER_URL
    downloads_dir: str = "downloads"
    chunk_size: int = 4096
    connect_timeout: float = 30.0
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.connect_timeout <= 0:
            raise ConfigError(f"connect_timeout must be positive, got {self.connect_timeout}")
        self.log_level = self.log_level.upper()

    @property
    def downloads_path(self) -> Path:
        return Path(self.downloads_dir).expanduser()

    def merged(self, **overrides: Any) -> ClientConfig:
        """Return a copy with the non-None overrides applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ClientConfig(**values)


def _coerce(name: str, value: Any) -> Any:
    if name == "chunk_size":
        return int(value)
    if name == "connect_timeout":
        return float(value)
    return str(value)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return data


def load_config(path: str | Path | None = None, environ: dict[str, str] | None = None) -> ClientConfig:
    """Build a ClientConfig from an optional YAML file and the environment.

    Raises:
        ConfigError: If the file or a value is invalid
        FileNotFoundError: If path is given but does not exist
    """
    env = os.environ if environ is None else environ
    known = {f.name for f in fields(ClientConfig)}
    values: dict[str, Any] = {}

    if path is not None:
        for key, value in _read_yaml(Path(path)).items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key '{key}' in {path}")
                continue
            values[key] = value

    for name in known:
        if env_value := env.get(f"{ENV_PREFIX}{name.upper()}"):
            values[name] = env_value

    try:
        return ClientConfig(**{k: _coerce(k, v) for k, v in values.items() if v is not None})
    except ConfigError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e
