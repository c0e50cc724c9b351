"""SQLite adapter implementing the SubscriptionStore protocol.

Subscriptions are keyed by room id. Writes go through transactions opened
with store.transaction(); everything written inside one transaction commits
together or is rolled back.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import fields
from typing import Any

from roomsync.adapters.sqlite.base_repository import (
    SQLiteBaseRepository,
    from_db_timestamp,
    to_db_timestamp,
)
from roomsync.adapters.sqlite.session_repository import select_session, write_session
from roomsync.domain.entities import Session, Subscription

logger = logging.getLogger(__name__)

_COLUMNS = tuple(f.name for f in fields(Subscription))
_BOOL_COLUMNS = ("alert", "open", "favorite", "read_only", "broadcast")
_DATE_COLUMNS = ("last_seen", "updated_at", "room_updated_at")

_UPSERT_SQL = f"""
    INSERT INTO subscriptions ({", ".join(_COLUMNS)})
    VALUES ({", ".join("?" for _ in _COLUMNS)})
    ON CONFLICT(rid) DO UPDATE SET
        {", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "rid")}
"""


def _to_row(subscription: Subscription) -> tuple[Any, ...]:
    values = []
    for column in _COLUMNS:
        value = getattr(subscription, column)
        if column in _BOOL_COLUMNS:
            value = int(value)
        elif column in _DATE_COLUMNS:
            value = to_db_timestamp(value)
        elif column == "last_message" and value is not None:
            value = json.dumps(value)
        values.append(value)
    return tuple(values)


def _from_row(row: sqlite3.Row) -> Subscription:
    values: dict[str, Any] = {column: row[column] for column in _COLUMNS}
    for column in _BOOL_COLUMNS:
        values[column] = bool(values[column])
    for column in _DATE_COLUMNS:
        values[column] = from_db_timestamp(values[column])
    if values["last_message"] is not None:
        values["last_message"] = json.loads(values["last_message"])
    return Subscription(**values)


class SQLiteStoreTransaction:
    """StoreTransaction bound to an open SQLite transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def find(self, rid: str) -> Subscription | None:
        row = self._conn.execute(
            "SELECT * FROM subscriptions WHERE rid = ?", (rid,)
        ).fetchone()
        return _from_row(row) if row else None

    def find_by_subscription_id(self, subscription_id: str) -> Subscription | None:
        row = self._conn.execute(
            "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
        ).fetchone()
        return _from_row(row) if row else None

    def upsert(self, subscription: Subscription) -> None:
        self._conn.execute(_UPSERT_SQL, _to_row(subscription))

    def get_session(self, session_id: str) -> Session | None:
        return select_session(self._conn, session_id)

    def save_session(self, session: Session) -> None:
        write_session(self._conn, session)


class SQLiteSubscriptionStore(SQLiteBaseRepository):
    """SQLite implementation of SubscriptionStore."""

    @contextmanager
    def transaction(self) -> Iterator[SQLiteStoreTransaction]:
        """Open a write transaction.

        Yields:
            Transaction scope for reads and writes.

        Raises:
            sqlite3.Error: If the transaction cannot be started or committed.
        """
        with self._write_transaction() as conn:
            yield SQLiteStoreTransaction(conn)

    def get(self, rid: str) -> Subscription | None:
        with self._locked() as conn:
            return SQLiteStoreTransaction(conn).find(rid)

    def list_subscriptions(
        self,
        auth_id: str | None = None,
        include_removed: bool = False,
    ) -> list[Subscription]:
        """List subscriptions ordered by room id.

        Args:
            auth_id: Only subscriptions owned by this session. Soft-removed
                rows have no owner, so they are only returned without it.
            include_removed: Also return soft-removed subscriptions.
        """
        query = "SELECT * FROM subscriptions"
        params: tuple[Any, ...] = ()
        if auth_id is not None:
            if include_removed:
                query += " WHERE auth_id = ? OR auth_id IS NULL"
            else:
                query += " WHERE auth_id = ?"
            params = (auth_id,)
        elif not include_removed:
            query += " WHERE auth_id IS NOT NULL"
        query += " ORDER BY rid"

        with self._locked() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_from_row(row) for row in rows]

    def count(self) -> int:
        with self._locked() as conn:
            return conn.execute("SELECT COUNT(*) FROM subscriptions").fetchone()[0]

    def mark_read(self, rid: str) -> bool:
        """Clear the unread state of a subscription.

        Returns:
            True if the subscription exists.
        """
        with self._write_transaction() as conn:
            cursor = conn.execute(
                "UPDATE subscriptions SET unread = 0, user_mentions = 0, alert = 0 WHERE rid = ?",
                (rid,),
            )
        if cursor.rowcount == 0:
            logger.debug("mark_read: no subscription for %s", rid)
        return cursor.rowcount > 0
