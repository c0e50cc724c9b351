"""Factory classes for orchestrator and adapter instantiation.

This module centralizes the creation of the sync orchestrator and its
dependencies, keeping the CLI layer free from direct adapter imports.

The factories use lazy imports so that commands which never talk to the
server (status, list) do not import the HTTP stack.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from roomsync.adapters.sqlite import SQLiteSessionRepository, SQLiteSubscriptionStore
    from roomsync.core.sync import BackgroundSync, SubscriptionsSync
    from roomsync.domain.config import RoomSyncConfig
    from roomsync.domain.entities import Session


class SyncFactory:
    """Factory for the sync orchestrator and the stores it writes to.

    Owns every resource it creates; close() releases them.

    Args:
        config: RoomSyncConfig with server, legacy and retry settings.
        db_path: Path to the SQLite store.
    """

    def __init__(self, config: RoomSyncConfig, db_path: Path) -> None:
        self._config = config
        self._db_path = db_path
        self._store: SQLiteSubscriptionStore | None = None
        self._sessions: SQLiteSessionRepository | None = None
        self._closeables: list = []

    def create_store(self) -> SQLiteSubscriptionStore:
        if self._store is None:
            from roomsync.adapters.sqlite import SQLiteSubscriptionStore

            self._store = SQLiteSubscriptionStore(self._db_path)
            self._closeables.append(self._store)
        return self._store

    def create_session_repository(self) -> SQLiteSessionRepository:
        if self._sessions is None:
            from roomsync.adapters.sqlite import SQLiteSessionRepository

            self._sessions = SQLiteSessionRepository(self._db_path)
            self._closeables.append(self._sessions)
        return self._sessions

    def create_sync(self, session: Session | None = None) -> SubscriptionsSync:
        """Create the orchestrator wired to real adapters.

        Args:
            session: Session whose server and credentials the transports use.
                Defaults to the current session; without one the configured
                server URL is used unauthenticated.

        Returns:
            SubscriptionsSync instance.
        """
        from roomsync.adapters.http import HttpSyncTransport
        from roomsync.adapters.legacy import LegacyReadFallback, SocketLegacyChannel
        from roomsync.core.sync import SubscriptionsSync

        store = self.create_store()
        sessions = self.create_session_repository()
        if session is None:
            session = sessions.current()

        transport = HttpSyncTransport(
            base_url=session.server_url if session else self._config.server.url,
            user_id=session.user_id if session else None,
            token=session.token if session else None,
            timeout=self._config.server.timeout,
        )
        channel = SocketLegacyChannel(
            address=self._config.legacy.address,
            timeout=self._config.legacy.timeout,
            token=session.token if session else None,
        )
        self._closeables.extend([transport, channel])

        return SubscriptionsSync(
            transport=transport,
            legacy=channel,
            store=store,
            sessions=sessions,
            read_fallback=LegacyReadFallback(channel, store),
            retries=self._config.sync.retries,
            retry_delay=self._config.sync.retry_delay,
            retry_backoff=self._config.sync.retry_backoff,
        )

    def create_background_sync(self, session: Session | None = None) -> BackgroundSync:
        from roomsync.core.sync import BackgroundSync

        background = BackgroundSync(
            self.create_sync(session), max_workers=self._config.sync.max_workers
        )
        self._closeables.insert(0, background)
        return background

    def close(self) -> None:
        """Release everything this factory created.

        Background executors shut down first so in-flight syncs finish
        before their connections close.
        """
        for resource in self._closeables:
            if hasattr(resource, "shutdown"):
                resource.shutdown()
            else:
                resource.close()
        self._closeables.clear()
        self._store = None
        self._sessions = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class ConfigFactory:
    """Factory for creating configuration-related instances."""

    def create_config_provider(self):
        """Create a TomlConfigProvider instance.

        Returns:
            TomlConfigProvider instance.
        """
        from roomsync.adapters.config.toml_config_provider import TomlConfigProvider

        return TomlConfigProvider()
