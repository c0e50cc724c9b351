"""Background dispatch of sync operations.

Each call is submitted to a thread pool and returns a Future. Completion is
signaled through the operation's callback (and the Future); there is no
cancellation once a sync has started.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Self

from roomsync.core.sync.orchestrator import Completion, SubscriptionsSync
from roomsync.domain.entities import SyncResult

logger = logging.getLogger(__name__)


class BackgroundSync:
    """Runs SubscriptionsSync operations off the caller's thread.

    Example:
        with BackgroundSync(sync) as background:
            future = background.sync_subscriptions(session.last_subscription_fetch)
            result = future.result()
    """

    def __init__(self, sync: SubscriptionsSync, max_workers: int = 2) -> None:
        self._sync = sync
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="roomsync"
        )

    def acknowledge_read(
        self, rid: str, completion: Completion | None = None
    ) -> Future[SyncResult]:
        return self._executor.submit(self._sync.acknowledge_read, rid, completion)

    def sync_subscriptions(
        self,
        updated_since: datetime | None = None,
        completion: Completion | None = None,
        session_id: str | None = None,
    ) -> Future[SyncResult]:
        return self._executor.submit(
            self._sync.sync_subscriptions, updated_since, completion, session_id
        )

    def sync_rooms(
        self,
        updated_since: datetime | None = None,
        completion: Completion | None = None,
        session_id: str | None = None,
    ) -> Future[SyncResult]:
        return self._executor.submit(
            self._sync.sync_rooms, updated_since, completion, session_id
        )

    def full_sync(
        self,
        updated_since: datetime | None = None,
        session_id: str | None = None,
    ) -> Future[list[SyncResult]]:
        """Sync subscriptions, then rooms, as one background job.

        Subscriptions go first: rooms only enrich subscriptions that already
        exist, so the reverse order would drop rooms for new subscriptions.
        """
        return self._executor.submit(self._full_sync, updated_since, session_id)

    def _full_sync(
        self,
        updated_since: datetime | None,
        session_id: str | None,
    ) -> list[SyncResult]:
        subscriptions = self._sync.sync_subscriptions(updated_since, session_id=session_id)
        rooms = self._sync.sync_rooms(updated_since, session_id=session_id)
        logger.debug(
            "Full sync finished: subscriptions=%s rooms=%s",
            subscriptions.outcome.value,
            rooms.outcome.value,
        )
        return [subscriptions, rooms]

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; wait for in-flight syncs if requested."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> bool:
        self.shutdown()
        return False
