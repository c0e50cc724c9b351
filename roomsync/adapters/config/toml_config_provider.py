"""Config provider for a roomsync data directory.

A data directory (``.roomsync`` by default, or ``--data-dir``) holds the
local store and its config.toml. Settings for server, legacy socket, retry
policy and logging are layered per section and field:

- built-in defaults (RoomSyncConfig.default())
- the user's global config.toml, shared by every data directory
- the data directory's own config.toml

A layer that cannot be parsed or validated is skipped with a warning, so a
broken file never stops a sync from running on the remaining layers.
"""

import logging
from pathlib import Path

from roomsync.domain.config import RoomSyncConfig
from roomsync.shared.config_io import get_global_config_path, load_config_data

logger = logging.getLogger(__name__)

LOCAL_CONFIG_FILENAME = "config.toml"


class TomlConfigProvider:
    """ConfigProvider reading the global and data-directory TOML layers."""

    def load(self, data_dir: Path) -> RoomSyncConfig:
        """Resolve the configuration for a data directory.

        Args:
            data_dir: Data directory whose config.toml overrides the global one.

        Returns:
            RoomSyncConfig with every valid layer applied.
        """
        config = RoomSyncConfig.default()
        config = self._apply_layer(config, get_global_config_path(), "global config")
        return self._apply_layer(
            config, data_dir / LOCAL_CONFIG_FILENAME, LOCAL_CONFIG_FILENAME
        )

    @staticmethod
    def _apply_layer(config: RoomSyncConfig, path: Path, label: str) -> RoomSyncConfig:
        if not path.exists():
            return config
        try:
            data = load_config_data(path)
            merged = RoomSyncConfig.from_partial(config, data)
        except (FileNotFoundError, ValueError) as e:
            logger.warning("Failed to parse %s at %s: %s. Skipping it.", label, path, e)
            return config
        logger.debug("Applied %s from %s", label, path)
        return merged
