"""Delta merge engine.

Turns a DeltaBatch into store mutations inside a caller-owned transaction.
The caller decides transaction boundaries; the functions here never commit.

Merge rules:
- "list" and "update" records are upserted with the session's ownership
  link; "update" is applied after "list", so the later group wins when both
  name the same room.
- "remove" records are soft removals: the row is created if missing and its
  ownership link is cleared. Rows are never deleted.
- A subscription record naming only its own "_id" is matched by stored
  subscription id; with no match it is dropped, since a row needs a room id.
- Room records only enrich subscriptions that already exist. A room with no
  matching subscription is dropped; rooms never create subscriptions.
"""

import logging
from dataclasses import dataclass, fields
from datetime import datetime, timedelta
from enum import Enum

from roomsync.domain.entities import SUBSCRIPTION_FIELDS, Subscription
from roomsync.domain.exceptions import SessionNotFoundError
from roomsync.domain.records import DeltaBatch, RoomRecord, SubscriptionRecord
from roomsync.ports.repositories import StoreTransaction

logger = logging.getLogger(__name__)

# How far a rooms fetch backdates the watermark, so the next subscriptions
# fetch re-covers the boundary second.
ROOMS_WATERMARK_BACKDATE = timedelta(seconds=1)

_SUBSCRIPTION_DEFAULTS = {
    f.name: f.default for f in fields(Subscription) if f.name in SUBSCRIPTION_FIELDS
}


class MergeMode(str, Enum):
    """How list/update records are written.

    - UPSERT: the record replaces all subscription-owned fields (typed API
      records are complete objects); room enrichment is kept.
    - GET_OR_CREATE: only the fields present in the record are applied to
      the existing row (legacy records may be partial).
    """

    UPSERT = "upsert"
    GET_OR_CREATE = "get_or_create"


@dataclass
class MergeStats:
    """Counts of what a merge touched."""

    upserted: int = 0
    removed: int = 0
    enriched: int = 0
    dropped: int = 0
    watermark: datetime | None = None


def _write_subscription(
    tx: StoreTransaction,
    record: SubscriptionRecord,
    auth_id: str | None,
    mode: MergeMode,
) -> bool:
    """Write one record; False if it names no room the store can resolve."""
    if record.rid is None:
        existing = tx.find_by_subscription_id(record.subscription_id)
        if existing is None:
            logger.debug("No subscription with id %s; record dropped", record.subscription_id)
            return False
    else:
        existing = tx.find(record.rid)

    if existing is None:
        base = Subscription(rid=record.rid)
    elif mode == MergeMode.UPSERT:
        base = existing.with_fields(_SUBSCRIPTION_DEFAULTS)
    else:
        base = existing
    tx.upsert(base.with_fields({**record.values, "auth_id": auth_id}))
    return True


def merge_subscriptions(
    tx: StoreTransaction,
    session_id: str,
    batch: DeltaBatch[SubscriptionRecord],
    now: datetime,
    mode: MergeMode = MergeMode.UPSERT,
) -> MergeStats:
    """Apply a subscriptions batch and advance the session watermark.

    Upserts, removals and the watermark advance are written through the same
    transaction so they commit together.

    Args:
        tx: Open store transaction.
        session_id: Session that owns list/update records.
        batch: Validated subscription records.
        now: Sync time; becomes the new watermark.
        mode: How list/update records are written.

    Returns:
        MergeStats with counts and the new watermark.

    Raises:
        SessionNotFoundError: If the session does not exist in the store.
    """
    session = tx.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(f"Session '{session_id}' not found")

    stats = MergeStats()
    for record in batch.upserts():
        if _write_subscription(tx, record, session.id, mode):
            stats.upserted += 1
        else:
            stats.dropped += 1

    for record in batch.removed:
        # A removal only needs the identity; never reset the row's fields
        if _write_subscription(tx, record, None, MergeMode.GET_OR_CREATE):
            stats.removed += 1
        else:
            stats.dropped += 1

    previous = session.last_subscription_fetch
    session.last_subscription_fetch = now if previous is None else max(previous, now)
    tx.save_session(session)
    stats.watermark = session.last_subscription_fetch

    logger.debug(
        "Merged subscriptions for session %s: %d upserted, %d removed",
        session.id,
        stats.upserted,
        stats.removed,
    )
    return stats


def merge_rooms(tx: StoreTransaction, batch: DeltaBatch[RoomRecord]) -> MergeStats:
    """Enrich existing subscriptions with room metadata.

    Args:
        tx: Open store transaction.
        batch: Validated room records; the remove group is ignored.

    Returns:
        MergeStats with enriched and dropped counts.
    """
    stats = MergeStats()
    for record in batch.upserts():
        subscription = tx.find(record.rid)
        if subscription is None:
            stats.dropped += 1
            continue
        tx.upsert(subscription.with_fields(record.values))
        stats.enriched += 1

    if stats.dropped:
        logger.debug("Dropped %d room records with no subscription", stats.dropped)
    return stats


def backdate_watermark(
    tx: StoreTransaction,
    session_id: str,
    now: datetime,
) -> datetime | None:
    """Set the session watermark to one second before now.

    Returns:
        The new watermark, or None if the session does not exist.
    """
    session = tx.get_session(session_id)
    if session is None:
        return None
    session.last_subscription_fetch = now - ROOMS_WATERMARK_BACKDATE
    tx.save_session(session)
    return session.last_subscription_fetch
