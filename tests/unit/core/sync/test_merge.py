"""Tests for the delta merge engine against the SQLite store."""

from datetime import UTC, datetime, timedelta

import pytest

from roomsync.core.sync.merge import (
    ROOMS_WATERMARK_BACKDATE,
    MergeMode,
    backdate_watermark,
    merge_rooms,
    merge_subscriptions,
)
from roomsync.domain.entities import Session, Subscription
from roomsync.domain.exceptions import SessionNotFoundError
from roomsync.domain.records import DeltaBatch, RoomRecord, SubscriptionRecord
from tests.helpers import SYNC_TIME, seed_subscriptions


def subscriptions_batch(payload: dict) -> DeltaBatch[SubscriptionRecord]:
    return DeltaBatch.from_typed_payload(payload, SubscriptionRecord.from_payload)


def rooms_batch(payload: dict) -> DeltaBatch[RoomRecord]:
    return DeltaBatch.from_typed_payload(payload, RoomRecord.from_payload)


def snapshot(store) -> list:
    return store.list_subscriptions(include_removed=True)


class TestMergeSubscriptions:
    """Tests for merge_subscriptions."""

    def test_list_and_update_are_owned_remove_is_cleared(self, store, session: Session) -> None:
        """Every upserted record is owned; every removed record exists unowned."""
        batch = subscriptions_batch(
            {
                "list": [{"rid": "r1"}, {"rid": "r2"}],
                "update": [{"rid": "r3", "unread": 2}],
                "remove": [{"rid": "r4"}],
            }
        )

        with store.transaction() as tx:
            stats = merge_subscriptions(tx, session.id, batch, SYNC_TIME)

        assert stats.upserted == 3
        assert stats.removed == 1
        for rid in ("r1", "r2", "r3"):
            assert store.get(rid).auth_id == session.id
        removed = store.get("r4")
        assert removed is not None
        assert removed.auth_id is None

    def test_removal_keeps_existing_row(self, store, session: Session) -> None:
        seed_subscriptions(store, "r1", "r2", auth_id=session.id)

        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, subscriptions_batch({"remove": [{"id": "r1"}]}), SYNC_TIME)

        r1 = store.get("r1")
        assert r1 is not None
        assert r1.auth_id is None
        assert r1.name == "r1"
        assert store.get("r2").auth_id == session.id
        assert store.count() == 2

    def test_record_named_by_subscription_id_updates_its_room(self, store, session: Session) -> None:
        with store.transaction() as tx:
            tx.upsert(Subscription(rid="r1", id="sub-1", unread=3, auth_id=session.id))

        with store.transaction() as tx:
            stats = merge_subscriptions(
                tx,
                session.id,
                subscriptions_batch({"remove": [{"_id": "sub-1"}, {"_id": "unknown"}]}),
                SYNC_TIME,
            )

        assert (stats.removed, stats.dropped) == (1, 1)
        assert [s.rid for s in snapshot(store)] == ["r1"]
        assert store.get("r1").auth_id is None
        assert store.get("r1").unread == 3

    def test_applying_batch_twice_is_idempotent(self, store, session: Session) -> None:
        batch = subscriptions_batch(
            {
                "list": [{"rid": "r1", "name": "general", "unread": 3}],
                "update": [{"rid": "r2", "f": True}],
                "remove": [{"rid": "r3"}],
            }
        )

        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, batch, SYNC_TIME)
        once = snapshot(store)

        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, batch, SYNC_TIME)

        assert snapshot(store) == once
        assert store.count() == 3

    def test_update_wins_over_list(self, store, session: Session) -> None:
        batch = subscriptions_batch(
            {"list": [{"rid": "r1", "unread": 1}], "update": [{"rid": "r1", "unread": 9}]}
        )

        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, batch, SYNC_TIME)

        assert store.get("r1").unread == 9

    def test_upsert_keeps_room_enrichment(self, store, session: Session) -> None:
        seed_subscriptions(store, "r1", auth_id=session.id)
        with store.transaction() as tx:
            merge_rooms(tx, rooms_batch({"update": [{"_id": "r1", "topic": "news"}]}))

        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, subscriptions_batch({"update": [{"rid": "r1", "unread": 5}]}), SYNC_TIME)

        r1 = store.get("r1")
        assert r1.topic == "news"
        assert r1.unread == 5

    def test_upsert_resets_absent_subscription_fields(self, store, session: Session) -> None:
        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, subscriptions_batch({"list": [{"rid": "r1", "unread": 4, "f": True}]}), SYNC_TIME)
            merge_subscriptions(tx, session.id, subscriptions_batch({"update": [{"rid": "r1", "name": "x"}]}), SYNC_TIME)

        r1 = store.get("r1")
        assert r1.unread == 0
        assert r1.favorite is False
        assert r1.name == "x"

    def test_get_or_create_applies_only_present_fields(self, store, session: Session) -> None:
        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, subscriptions_batch({"list": [{"rid": "r1", "unread": 4, "f": True}]}), SYNC_TIME)
            merge_subscriptions(
                tx,
                session.id,
                subscriptions_batch({"update": [{"rid": "r1", "name": "x"}]}),
                SYNC_TIME,
                MergeMode.GET_OR_CREATE,
            )

        r1 = store.get("r1")
        assert r1.unread == 4
        assert r1.favorite is True
        assert r1.name == "x"

    def test_removed_subscription_can_be_reowned(self, store, session: Session) -> None:
        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, subscriptions_batch({"remove": [{"rid": "r1"}]}), SYNC_TIME)
            merge_subscriptions(tx, session.id, subscriptions_batch({"update": [{"rid": "r1"}]}), SYNC_TIME)

        assert store.get("r1").auth_id == session.id

    def test_watermark_set_to_sync_time(self, store, sessions, session: Session) -> None:
        with store.transaction() as tx:
            stats = merge_subscriptions(tx, session.id, subscriptions_batch({}), SYNC_TIME)

        assert stats.watermark == SYNC_TIME
        assert sessions.get(session.id).last_subscription_fetch == SYNC_TIME

    @pytest.mark.parametrize(
        "previous",
        [None, SYNC_TIME - timedelta(hours=1), SYNC_TIME, SYNC_TIME + timedelta(minutes=5)],
    )
    def test_watermark_never_moves_backwards(self, store, sessions, session: Session, previous) -> None:
        session.last_subscription_fetch = previous
        sessions.add(session)

        with store.transaction() as tx:
            merge_subscriptions(tx, session.id, subscriptions_batch({}), SYNC_TIME)

        after = sessions.get(session.id).last_subscription_fetch
        assert after is not None
        assert previous is None or after >= previous
        assert after >= SYNC_TIME

    def test_unknown_session_raises(self, store) -> None:
        with pytest.raises(SessionNotFoundError):
            with store.transaction() as tx:
                merge_subscriptions(tx, "ghost", subscriptions_batch({"list": [{"rid": "r1"}]}), SYNC_TIME)

        assert store.count() == 0


class TestMergeRooms:
    """Tests for merge_rooms."""

    def test_enriches_existing_subscription(self, store, session: Session) -> None:
        seed_subscriptions(store, "r1", auth_id=session.id)

        with store.transaction() as tx:
            stats = merge_rooms(
                tx, rooms_batch({"list": [{"_id": "r1", "topic": "news", "ro": True}]})
            )

        assert stats.enriched == 1
        r1 = store.get("r1")
        assert r1.topic == "news"
        assert r1.read_only is True
        assert r1.auth_id == session.id
        assert r1.name == "r1"

    def test_never_creates_subscriptions(self, store, session: Session) -> None:
        seed_subscriptions(store, "r1", auth_id=session.id)
        before = store.count()

        with store.transaction() as tx:
            stats = merge_rooms(
                tx,
                rooms_batch({"list": [{"_id": "unknown"}], "update": [{"_id": "other"}]}),
            )

        assert stats.dropped == 2
        assert stats.enriched == 0
        assert store.count() == before
        assert store.get("unknown") is None

    def test_remove_group_is_ignored(self, store, session: Session) -> None:
        seed_subscriptions(store, "r1", auth_id=session.id)

        with store.transaction() as tx:
            merge_rooms(tx, rooms_batch({"remove": [{"_id": "r1"}]}))

        assert store.get("r1").auth_id == session.id


class TestBackdateWatermark:
    """Tests for backdate_watermark."""

    def test_sets_one_second_before_now(self, store, sessions, session: Session) -> None:
        with store.transaction() as tx:
            watermark = backdate_watermark(tx, session.id, SYNC_TIME)

        assert ROOMS_WATERMARK_BACKDATE == timedelta(seconds=1)
        assert watermark == SYNC_TIME - timedelta(seconds=1)
        assert sessions.get(session.id).last_subscription_fetch == watermark

    def test_unknown_session_returns_none(self, store) -> None:
        with store.transaction() as tx:
            assert backdate_watermark(tx, "ghost", datetime.now(UTC)) is None
