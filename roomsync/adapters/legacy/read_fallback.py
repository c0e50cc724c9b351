"""Mark-as-read for servers without the typed read endpoint."""

import logging

from roomsync.adapters.sqlite.subscription_store import SQLiteSubscriptionStore
from roomsync.ports.legacy import LegacyChannel

logger = logging.getLogger(__name__)

READ_MESSAGES_METHOD = "readMessages"


class LegacyReadFallback:
    """ReadFallback that uses the legacy "readMessages" method.

    The server call advances the read state remotely; the local row is then
    cleared (unread, mentions, alert) so the room list updates before the
    next subscriptions sync.
    """

    def __init__(self, channel: LegacyChannel, store: SQLiteSubscriptionStore) -> None:
        self._channel = channel
        self._store = store

    def mark_as_read(self, rid: str) -> None:
        """Mark a room as read.

        Raises:
            LegacyRpcError: If the server call fails; the local row is untouched.
        """
        self._channel.call(READ_MESSAGES_METHOD, [rid])
        if not self._store.mark_read(rid):
            logger.debug("Marked %s read on the server; no local subscription", rid)
