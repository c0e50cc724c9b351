"""SQLite adapter implementing SessionRepository protocol."""

import sqlite3

from roomsync.adapters.sqlite.base_repository import (
    SQLiteBaseRepository,
    from_db_timestamp,
    to_db_timestamp,
)
from roomsync.domain.entities import Session
from roomsync.domain.exceptions import SessionNotFoundError


def session_from_row(row: sqlite3.Row) -> Session:
    """Build a Session from a sessions table row."""
    return Session(
        id=row["id"],
        user_id=row["user_id"],
        server_url=row["server_url"],
        token=row["token"],
        is_current=bool(row["is_current"]),
        last_subscription_fetch=from_db_timestamp(row["last_subscription_fetch"]),
    )


def select_session(conn: sqlite3.Connection, session_id: str) -> Session | None:
    row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
    return session_from_row(row) if row else None


def write_session(conn: sqlite3.Connection, session: Session) -> None:
    """UPSERT a session row.

    Uses ON CONFLICT DO UPDATE rather than INSERT OR REPLACE: a replace
    deletes the row first, which would clear every subscription's auth_id
    through the foreign key.
    """
    conn.execute(
        """
        INSERT INTO sessions (id, user_id, server_url, token, is_current, last_subscription_fetch)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            user_id = excluded.user_id,
            server_url = excluded.server_url,
            token = excluded.token,
            is_current = excluded.is_current,
            last_subscription_fetch = excluded.last_subscription_fetch
        """,
        (
            session.id,
            session.user_id,
            session.server_url,
            session.token,
            int(session.is_current),
            to_db_timestamp(session.last_subscription_fetch),
        ),
    )


class SQLiteSessionRepository(SQLiteBaseRepository):
    """SQLite implementation of SessionRepository."""

    def current(self) -> Session | None:
        with self._locked() as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE is_current = 1 LIMIT 1"
            ).fetchone()
        return session_from_row(row) if row else None

    def get(self, session_id: str) -> Session | None:
        with self._locked() as conn:
            return select_session(conn, session_id)

    def add(self, session: Session) -> None:
        """Add or replace a session.

        Adding a session marked current clears the flag on all others.
        """
        with self._write_transaction() as conn:
            if session.is_current:
                conn.execute("UPDATE sessions SET is_current = 0 WHERE id != ?", (session.id,))
            write_session(conn, session)

    def set_current(self, session_id: str) -> None:
        """Make a session the current one.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        with self._write_transaction() as conn:
            if select_session(conn, session_id) is None:
                raise SessionNotFoundError(f"Session '{session_id}' not found")
            conn.execute("UPDATE sessions SET is_current = (id = ?)", (session_id,))

    def list_all(self) -> list[Session]:
        with self._locked() as conn:
            rows = conn.execute("SELECT * FROM sessions ORDER BY id").fetchall()
        return [session_from_row(row) for row in rows]
