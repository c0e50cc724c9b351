"""Repository port interfaces for the local store.

These protocols define abstract interfaces for storing and retrieving
subscriptions and sessions. Implementations should be in adapters/ layer.
"""

from contextlib import AbstractContextManager
from typing import Protocol

from roomsync.domain.entities import Session, Subscription


class StoreTransaction(Protocol):
    """Read/write scope of one atomic store transaction.

    Everything written through a transaction becomes visible together when
    the transaction commits, or not at all.
    """

    def find(self, rid: str) -> Subscription | None:
        """Retrieve a subscription by room id.

        Args:
            rid: The room id.

        Returns:
            The subscription if found, None otherwise.
        """
        ...

    def find_by_subscription_id(self, subscription_id: str) -> Subscription | None:
        """Retrieve a subscription by its server-side subscription id."""
        ...

    def upsert(self, subscription: Subscription) -> None:
        """Add or replace a subscription by identity.

        Args:
            subscription: The subscription to store. Uses UPSERT semantics.
        """
        ...

    def get_session(self, session_id: str) -> Session | None:
        """Retrieve a session by id inside the transaction."""
        ...

    def save_session(self, session: Session) -> None:
        """Add or replace a session inside the transaction."""
        ...


class SubscriptionStore(Protocol):
    """Transactional store for subscriptions and the session watermark."""

    def transaction(self) -> AbstractContextManager[StoreTransaction]:
        """Open a write transaction.

        Commits when the block exits normally, rolls back if it raises.
        Concurrent transactions are serialized.
        """
        ...

    def get(self, rid: str) -> Subscription | None:
        """Retrieve a subscription by room id outside a transaction."""
        ...

    def list_subscriptions(
        self,
        auth_id: str | None = None,
        include_removed: bool = False,
    ) -> list[Subscription]:
        """List subscriptions.

        Args:
            auth_id: Only subscriptions owned by this session.
            include_removed: Also return soft-removed subscriptions.

        Returns:
            Subscriptions ordered by room id.
        """
        ...

    def count(self) -> int:
        """Count all subscription rows, soft-removed included."""
        ...


class SessionRepository(Protocol):
    """Repository for authenticated sessions."""

    def current(self) -> Session | None:
        """Return the current session, if one is set."""
        ...

    def get(self, session_id: str) -> Session | None:
        """Retrieve a session by id."""
        ...

    def add(self, session: Session) -> None:
        """Add or replace a session."""
        ...

    def set_current(self, session_id: str) -> None:
        """Make a session the current one.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        ...

    def list_all(self) -> list[Session]:
        """List all sessions."""
        ...
