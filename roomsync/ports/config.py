"""Configuration provider port.

Defines the interface for loading and accessing application configuration.
"""

from pathlib import Path
from typing import Protocol

from roomsync.domain.config import RoomSyncConfig


class ConfigProvider(Protocol):
    """Protocol for loading and providing configuration."""

    def load(self, data_dir: Path) -> RoomSyncConfig:
        """Load configuration from the data directory.

        Args:
            data_dir: Path to the roomsync data directory containing config.toml

        Returns:
            RoomSyncConfig instance with loaded or default values

        Note:
            Implementations should gracefully fall back to defaults
            if config file is missing or invalid.
        """
        ...
