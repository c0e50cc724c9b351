"""SQLite database schema for the roomsync local store.

Tables:
- sessions: Authenticated sessions and their subscription watermark
- subscriptions: One row per room id; auth_id NULL marks a soft removal
- meta: System metadata (schema version, creation time)
"""

import sqlite3
from pathlib import Path

# Schema version for migrations
SCHEMA_VERSION = 1


def init_database(db_path: Path) -> None:
    """Initialize a new roomsync database with complete schema.

    Safe to call on an existing database; existing rows are kept.

    Args:
        db_path: Path to the SQLite database file (typically .roomsync/store.db)

    Raises:
        sqlite3.Error: If database creation fails
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        _create_tables(conn)
        _create_indexes(conn)
        _insert_default_meta(conn)
        conn.commit()
    finally:
        conn.close()


def _create_tables(conn: sqlite3.Connection) -> None:
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            server_url TEXT NOT NULL,
            token TEXT NOT NULL DEFAULT '',
            is_current INTEGER NOT NULL DEFAULT 0,
            last_subscription_fetch TEXT
        )
    """)

    # Room enrichment columns are written only by the rooms fetch
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS subscriptions (
            rid TEXT PRIMARY KEY,
            id TEXT,
            name TEXT,
            fname TEXT,
            type TEXT,
            unread INTEGER NOT NULL DEFAULT 0,
            user_mentions INTEGER NOT NULL DEFAULT 0,
            alert INTEGER NOT NULL DEFAULT 0,
            open INTEGER NOT NULL DEFAULT 0,
            favorite INTEGER NOT NULL DEFAULT 0,
            last_seen TEXT,
            updated_at TEXT,
            topic TEXT,
            description TEXT,
            announcement TEXT,
            read_only INTEGER NOT NULL DEFAULT 0,
            broadcast INTEGER NOT NULL DEFAULT 0,
            last_message TEXT,
            room_updated_at TEXT,
            auth_id TEXT,
            FOREIGN KEY (auth_id) REFERENCES sessions(id) ON DELETE SET NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)


def _create_indexes(conn: sqlite3.Connection) -> None:
    cursor = conn.cursor()

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_subscriptions_auth
        ON subscriptions(auth_id)
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_subscriptions_id
        ON subscriptions(id)
    """)


def _insert_default_meta(conn: sqlite3.Connection) -> None:
    cursor = conn.cursor()

    cursor.execute(
        """
        INSERT OR IGNORE INTO meta (key, value) VALUES
        ('schema_version', ?),
        ('created_at', datetime('now'))
    """,
        (str(SCHEMA_VERSION),),
    )


def check_schema_version(db_path: Path) -> int:
    """Check the schema version of an existing database.

    Args:
        db_path: Path to the SQLite database

    Returns:
        Schema version number, or 0 if the database has no meta table
    """
    if not db_path.exists():
        return 0

    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT value FROM meta WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return 0
    finally:
        conn.close()
    return int(row[0]) if row else 0
