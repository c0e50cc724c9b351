"""SQLite adapters for roomsync storage."""

from .base_repository import SQLiteBaseRepository
from .schema import check_schema_version, init_database
from .session_repository import SQLiteSessionRepository
from .subscription_store import SQLiteStoreTransaction, SQLiteSubscriptionStore

__all__ = [
    "SQLiteBaseRepository",
    "SQLiteSessionRepository",
    "SQLiteStoreTransaction",
    "SQLiteSubscriptionStore",
    "init_database",
    "check_schema_version",
]
