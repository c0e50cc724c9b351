"""Tests for background dispatch of sync operations."""

import threading
from unittest.mock import MagicMock

import pytest

from roomsync.core.sync.background import BackgroundSync
from roomsync.domain.entities import ResourceKind, SyncOutcome, SyncResult


def result_for(resource: ResourceKind) -> SyncResult:
    return SyncResult(SyncOutcome.APPLIED, resource)


@pytest.fixture
def sync() -> MagicMock:
    mock = MagicMock()
    mock.sync_subscriptions.return_value = result_for(ResourceKind.SUBSCRIPTIONS)
    mock.sync_rooms.return_value = result_for(ResourceKind.ROOMS)
    mock.acknowledge_read.return_value = result_for(ResourceKind.READ)
    return mock


class TestBackgroundSync:
    """Tests for BackgroundSync."""

    def test_operations_return_futures(self, sync: MagicMock) -> None:
        with BackgroundSync(sync) as background:
            future = background.sync_subscriptions(None, session_id="s1")
            assert future.result(timeout=5).resource == ResourceKind.SUBSCRIPTIONS

        sync.sync_subscriptions.assert_called_once_with(None, None, "s1")

    def test_acknowledge_read_passes_completion(self, sync: MagicMock) -> None:
        completion = MagicMock()

        with BackgroundSync(sync) as background:
            background.acknowledge_read("r1", completion).result(timeout=5)

        sync.acknowledge_read.assert_called_once_with("r1", completion)

    def test_runs_off_the_calling_thread(self, sync: MagicMock) -> None:
        threads: list[str] = []

        def record_thread(*args, **kwargs):
            threads.append(threading.current_thread().name)
            return result_for(ResourceKind.ROOMS)

        sync.sync_rooms.side_effect = record_thread

        with BackgroundSync(sync) as background:
            background.sync_rooms().result(timeout=5)

        assert threads[0].startswith("roomsync")
        assert threads[0] != threading.current_thread().name

    def test_full_sync_runs_subscriptions_before_rooms(self, sync: MagicMock) -> None:
        order: list[str] = []
        sync.sync_subscriptions.side_effect = lambda *a, **kw: (
            order.append("subscriptions") or result_for(ResourceKind.SUBSCRIPTIONS)
        )
        sync.sync_rooms.side_effect = lambda *a, **kw: (
            order.append("rooms") or result_for(ResourceKind.ROOMS)
        )

        with BackgroundSync(sync, max_workers=4) as background:
            results = background.full_sync("since", session_id="s1").result(timeout=5)

        assert order == ["subscriptions", "rooms"]
        assert [r.resource for r in results] == [ResourceKind.SUBSCRIPTIONS, ResourceKind.ROOMS]
        sync.sync_subscriptions.assert_called_once_with("since", session_id="s1")
        sync.sync_rooms.assert_called_once_with("since", session_id="s1")

    def test_shutdown_rejects_new_work(self, sync: MagicMock) -> None:
        background = BackgroundSync(sync)
        background.shutdown()

        with pytest.raises(RuntimeError):
            background.sync_rooms()
