"""Base class for SQLite repository adapters.

Provides consistent connection management, thread safety, and context
manager protocol for all SQLite-based adapters in the codebase.
"""

import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Self


def to_db_timestamp(value: datetime | None) -> str | None:
    """Encode a datetime as an ISO-8601 UTC string for storage."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def from_db_timestamp(value: str | None) -> datetime | None:
    """Decode a stored ISO-8601 string into an aware datetime."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class SQLiteBaseRepository:
    """Base class providing SQLite connection management.

    All SQLite repository adapters should inherit from this class to get:
    - Thread-safe connection initialization (double-checked locking)
    - Cross-thread connection access (check_same_thread=False)
    - Serialized access to the shared connection (_locked)
    - Explicit transactions (_write_transaction)
    - Context manager protocol (__enter__/__exit__)

    Thread Safety:
        Connections are initialized lazily with double-checked locking.
        The connection runs in autocommit mode (isolation_level=None) and
        every use goes through a reentrant lock, so one thread's
        transaction is never interleaved with another thread's statements.
        Separate repository instances on the same file rely on SQLite's own
        locking (BEGIN IMMEDIATE plus a busy timeout).

    Example:
        class MyRepository(SQLiteBaseRepository):
            def my_query(self) -> list:
                with self._locked() as conn:
                    return conn.execute("SELECT * FROM my_table").fetchall()
    """

    def __init__(
        self,
        db_path: Path,
        *,
        foreign_keys: bool = True,
        busy_timeout: float = 30.0,
        connection_setup: Callable[[sqlite3.Connection], None] | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            db_path: Path to SQLite database file.
            foreign_keys: Whether to enable foreign key constraints.
            busy_timeout: Seconds to wait for another connection's lock.
            connection_setup: Optional callback for custom connection setup.
                Called after connection is created but before first use.
        """
        self.db_path = db_path
        self._foreign_keys = foreign_keys
        self._busy_timeout = busy_timeout
        self._connection_setup = connection_setup
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()
        self._use_lock = threading.RLock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection, creating one if needed.

        Uses double-checked locking to ensure thread-safe initialization.

        Returns:
            SQLite connection object.
        """
        if self._conn is None:
            with self._conn_lock:
                # Double-check pattern: re-check after acquiring lock
                if self._conn is None:
                    conn = sqlite3.connect(
                        self.db_path,
                        check_same_thread=False,
                        isolation_level=None,
                        timeout=self._busy_timeout,
                    )
                    conn.row_factory = sqlite3.Row
                    if self._foreign_keys:
                        conn.execute("PRAGMA foreign_keys = ON")
                    if self._connection_setup is not None:
                        self._connection_setup(conn)
                    self._conn = conn
        return self._conn

    @contextmanager
    def _locked(self) -> Iterator[sqlite3.Connection]:
        """Hold the connection for a sequence of statements."""
        with self._use_lock:
            yield self._get_connection()

    @contextmanager
    def _write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements in one atomic write transaction.

        Commits when the block exits normally, rolls back if it raises.
        """
        with self._locked() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def close(self) -> None:
        """Close the database connection if open.

        Safe to call multiple times. After calling close(), the next call
        to _get_connection() will create a new connection.
        """
        with self._use_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> bool:
        """Exit context manager, closing the database connection."""
        self.close()
        return False
