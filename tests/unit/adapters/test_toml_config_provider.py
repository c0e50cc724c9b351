"""Unit tests for TomlConfigProvider adapter."""

import logging
from pathlib import Path

import pytest

from roomsync.adapters.config.toml_config_provider import TomlConfigProvider
from roomsync.domain.config import RoomSyncConfig


@pytest.fixture
def provider() -> TomlConfigProvider:
    """Create a TomlConfigProvider instance."""
    return TomlConfigProvider()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / ".roomsync"
    path.mkdir()
    return path


def write_global(global_path: Path, text: str) -> None:
    global_path.parent.mkdir(parents=True, exist_ok=True)
    global_path.write_text(text)


class TestLoadConfig:
    """Tests for the defaults -> global -> local cascade."""

    def test_missing_files_return_defaults(self, provider: TomlConfigProvider, data_dir: Path) -> None:
        assert provider.load(data_dir) == RoomSyncConfig.default()

    def test_local_config_overrides_defaults(self, provider: TomlConfigProvider, data_dir: Path) -> None:
        (data_dir / "config.toml").write_text(
            """
[server]
url = "https://chat.example.com"

[sync]
retries = 1
"""
        )

        config = provider.load(data_dir)

        assert config.server.url == "https://chat.example.com"
        assert config.sync.retries == 1
        assert config.sync.retry_backoff == 2.0

    def test_global_config_applies_when_no_local(
        self, provider: TomlConfigProvider, data_dir: Path, isolated_global_config: Path
    ) -> None:
        write_global(isolated_global_config, '[legacy]\naddress = "/run/chat.sock"\n')

        assert provider.load(data_dir).legacy.address == "/run/chat.sock"

    def test_local_overrides_global_field_by_field(
        self, provider: TomlConfigProvider, data_dir: Path, isolated_global_config: Path
    ) -> None:
        write_global(isolated_global_config, "[sync]\nretries = 5\nretry_delay = 2.0\n")
        (data_dir / "config.toml").write_text("[sync]\nretries = 0\n")

        config = provider.load(data_dir)

        assert config.sync.retries == 0
        assert config.sync.retry_delay == 2.0


class TestInvalidConfig:
    """Tests for graceful handling of broken config files."""

    def test_invalid_local_toml_falls_back(
        self, provider: TomlConfigProvider, data_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (data_dir / "config.toml").write_text("[sync\nretries = ")

        with caplog.at_level(logging.WARNING):
            config = provider.load(data_dir)

        assert config == RoomSyncConfig.default()
        assert "Failed to parse config.toml" in caplog.text

    def test_invalid_value_falls_back(
        self, provider: TomlConfigProvider, data_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        (data_dir / "config.toml").write_text("[sync]\nretries = -1\n")

        with caplog.at_level(logging.WARNING):
            config = provider.load(data_dir)

        assert config.sync.retries == 3
        assert "retries cannot be negative" in caplog.text

    def test_invalid_global_keeps_local(
        self, provider: TomlConfigProvider, data_dir: Path, isolated_global_config: Path
    ) -> None:
        write_global(isolated_global_config, "[server]\nunknown = 1\n")
        (data_dir / "config.toml").write_text("[server]\ntimeout = 3.0\n")

        config = provider.load(data_dir)

        assert config.server.timeout == 3.0
        assert config.server.url == RoomSyncConfig.default().server.url

    def test_warning_names_the_broken_layer(
        self,
        provider: TomlConfigProvider,
        data_dir: Path,
        isolated_global_config: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        write_global(isolated_global_config, "[sync\n")
        (data_dir / "config.toml").write_text("[sync]\nretries = 1\n")

        with caplog.at_level(logging.DEBUG, logger="roomsync.adapters.config"):
            config = provider.load(data_dir)

        assert config.sync.retries == 1
        assert f"Failed to parse global config at {isolated_global_config}" in caplog.text
        assert f"Applied config.toml from {data_dir / 'config.toml'}" in caplog.text
