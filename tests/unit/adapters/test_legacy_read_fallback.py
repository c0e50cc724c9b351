"""Tests for the legacy mark-as-read fallback."""

import pytest

from roomsync.adapters.legacy.read_fallback import READ_MESSAGES_METHOD, LegacyReadFallback
from roomsync.domain.entities import Subscription
from roomsync.domain.exceptions import LegacyRpcError
from tests.helpers import FakeLegacyChannel


@pytest.fixture
def unread_room(store, session) -> Subscription:
    subscription = Subscription(
        rid="r1", name="general", unread=5, user_mentions=2, alert=True, auth_id=session.id
    )
    with store.transaction() as tx:
        tx.upsert(subscription)
    return subscription


def test_marks_read_remotely_then_locally(store, unread_room: Subscription) -> None:
    channel = FakeLegacyChannel({READ_MESSAGES_METHOD: None})

    LegacyReadFallback(channel, store).mark_as_read("r1")

    assert channel.calls == [(READ_MESSAGES_METHOD, ["r1"])]
    r1 = store.get("r1")
    assert r1.unread == 0
    assert r1.user_mentions == 0
    assert r1.alert is False
    assert r1.name == "general"


def test_server_error_leaves_local_state(store, unread_room: Subscription) -> None:
    channel = FakeLegacyChannel({READ_MESSAGES_METHOD: LegacyRpcError("denied")})

    with pytest.raises(LegacyRpcError):
        LegacyReadFallback(channel, store).mark_as_read("r1")

    assert store.get("r1").unread == 5


def test_unknown_room_is_not_created(store) -> None:
    channel = FakeLegacyChannel({READ_MESSAGES_METHOD: None})

    LegacyReadFallback(channel, store).mark_as_read("nowhere")

    assert store.get("nowhere") is None
