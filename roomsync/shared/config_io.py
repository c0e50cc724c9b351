"""Configuration I/O utilities for reading and writing TOML config files.

This module handles serialization/deserialization of RoomSyncConfig to/from TOML format.
"""

import os
import platform
import tomllib
from dataclasses import asdict
from pathlib import Path
from typing import Any

import tomli_w

from roomsync.domain.config import RoomSyncConfig


def get_global_config_path() -> Path:
    """Get the path to the global config file.

    The location is platform-dependent:
    - Linux/macOS: $XDG_CONFIG_HOME/roomsync/config.toml or ~/.config/roomsync/config.toml
    - Windows: %APPDATA%/roomsync/config.toml

    Returns:
        Path to the global config file (may not exist)
    """
    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "roomsync" / "config.toml"
        return Path.home() / ".config" / "roomsync" / "config.toml"
    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        return Path(xdg_config) / "roomsync" / "config.toml"
    return Path.home() / ".config" / "roomsync" / "config.toml"


def load_config_data(path: Path) -> dict[str, Any]:
    """Load raw TOML data from a config file.

    Args:
        path: Path to config.toml file

    Returns:
        Dictionary with parsed TOML data

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in config file: {e}") from e


def load_config(path: Path) -> RoomSyncConfig:
    """Load configuration from a single TOML file over the defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed
    """
    return RoomSyncConfig.from_partial(RoomSyncConfig.default(), load_config_data(path))


def save_config(config: RoomSyncConfig, path: Path) -> None:
    """Save configuration to a TOML file.

    Args:
        config: RoomSyncConfig to save
        path: Destination path for config.toml
    """
    data: dict[str, Any] = asdict(config)

    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("wb") as f:
        tomli_w.dump(data, f)


def create_default_config_file(path: Path, server_url: str | None = None) -> None:
    """Create a default config.toml file with comments.

    Args:
        path: Destination path for config.toml
        server_url: Server base URL to write into [server]
    """
    defaults = RoomSyncConfig.default()
    url = server_url or defaults.server.url
    # Template string preserves comments; values mirror RoomSyncConfig defaults
    template = f"""\
# roomsync configuration
# Created by: roomsync init

[server]
# Base URL of the server's REST API
url = "{url}"

# Request timeout in seconds
timeout = {defaults.server.timeout}

[legacy]
# Legacy RPC socket, used for servers that predate the REST endpoints.
# "host:port" for TCP, or a path for a Unix socket.
address = "{defaults.legacy.address}"
timeout = {defaults.legacy.timeout}

[sync]
# Retries of a REST fetch on transient failure (never on version mismatch)
retries = {defaults.sync.retries}

# Seconds before the first retry, multiplied by retry_backoff each time
retry_delay = {defaults.sync.retry_delay}
retry_backoff = {defaults.sync.retry_backoff}

# Background sync threads
max_workers = {defaults.sync.max_workers}

[logging]
# DEBUG, INFO, WARNING or ERROR
level = "{defaults.logging.level}"
"""

    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", encoding="utf-8") as f:
        f.write(template)
