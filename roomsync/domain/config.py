"""Config domain models for roomsync.

Configuration is stored in <data_dir>/config.toml (with a global fallback)
and represents connection, retry and logging preferences. This module defines
the domain models that represent validated configuration state.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Literal


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for the typed REST API.

    Attributes:
        url: Base URL of the server (e.g., "https://chat.example.com")
        timeout: Request timeout in seconds

    Raises:
        ValueError: If timeout is not positive.
    """

    url: str = "http://localhost:3000"
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate server config after initialization."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


@dataclass(frozen=True)
class LegacyConfig:
    """Configuration for the legacy RPC socket.

    Attributes:
        address: "host:port" for TCP, or a filesystem path for a Unix socket
        timeout: Socket operation timeout in seconds

    Raises:
        ValueError: If timeout is not positive.
    """

    address: str = "localhost:3001"
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate legacy config after initialization."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


@dataclass(frozen=True)
class SyncConfig:
    """Configuration for sync retry and dispatch.

    Attributes:
        retries: Retries of a typed fetch on transient failure (default: 3)
        retry_delay: Seconds to wait before the first retry
        retry_backoff: Multiplier applied to the delay after each retry
        max_workers: Background sync threads

    Raises:
        ValueError: If retries or retry_delay is negative, retry_backoff < 1,
                   or max_workers is not positive.
    """

    retries: int = 3
    retry_delay: float = 0.5
    retry_backoff: float = 2.0
    max_workers: int = 2

    def __post_init__(self) -> None:
        """Validate sync config after initialization."""
        if self.retries < 0:
            raise ValueError(f"retries cannot be negative, got {self.retries}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay cannot be negative, got {self.retry_delay}")
        if self.retry_backoff < 1:
            raise ValueError(f"retry_backoff must be >= 1, got {self.retry_backoff}")
        if self.max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for log output.

    Attributes:
        level: Log level name
        format: logging format string
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    def __post_init__(self) -> None:
        """Validate logging config after initialization."""
        if self.level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass(frozen=True)
class RoomSyncConfig:
    """Complete roomsync configuration.

    Attributes:
        server: Typed API configuration
        legacy: Legacy RPC configuration
        sync: Retry and dispatch configuration
        logging: Log output configuration
    """

    server: ServerConfig = field(default_factory=ServerConfig)
    legacy: LegacyConfig = field(default_factory=LegacyConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @staticmethod
    def default() -> "RoomSyncConfig":
        """Create a config with all default values."""
        return RoomSyncConfig()

    @staticmethod
    def from_partial(base: "RoomSyncConfig", data: dict[str, Any]) -> "RoomSyncConfig":
        """Apply a partial config dictionary on top of an existing config.

        Sections present in data override matching fields of base; unknown
        keys are rejected so typos surface as errors.

        Raises:
            ValueError: If a section contains unknown keys or invalid values.
        """
        sections = {
            "server": ServerConfig,
            "legacy": LegacyConfig,
            "sync": SyncConfig,
            "logging": LoggingConfig,
        }
        merged: dict[str, Any] = {}
        for name, section_cls in sections.items():
            current = getattr(base, name)
            overrides = data.get(name, {})
            if not isinstance(overrides, dict):
                raise ValueError(f"[{name}] must be a table")
            known = {f.name for f in fields(section_cls)}
            unknown = set(overrides) - known
            if unknown:
                raise ValueError(f"Unknown keys in [{name}]: {', '.join(sorted(unknown))}")
            values = {f.name: getattr(current, f.name) for f in fields(section_cls)}
            values.update(overrides)
            try:
                merged[name] = section_cls(**values)
            except TypeError as e:
                raise ValueError(f"Invalid [{name}] section: {e}") from e
        return RoomSyncConfig(**merged)
