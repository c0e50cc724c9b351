"""Domain entities and value objects.

Core domain models representing subscriptions, authenticated sessions and
the outcome of sync operations. These are pure Python dataclasses with no
dependencies on infrastructure.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class SyncOutcome(str, Enum):
    """Outcome of a sync operation.

    Every operation yields exactly one of these:
    - APPLIED: Mutations were committed to the store
    - SKIPPED: Nothing was merged this cycle (no-op), state unchanged
    - FAILED: The attempt failed; state unchanged until the next sync
    """

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class SyncErrorType(str, Enum):
    """Classification of sync errors.

    Allows callers to distinguish between different failure modes and respond
    appropriately (e.g., switch protocol, wait for next cycle).
    """

    NONE = "none"  # No error occurred
    VERSION = "version"  # Server lacks the typed endpoint
    TRANSPORT = "transport"  # Network or server failure on the typed API
    LEGACY_RPC = "legacy_rpc"  # Legacy method call failed
    MALFORMED = "malformed"  # Payload missing expected fields
    NO_SESSION = "no_session"  # No authenticated session to sync for
    DATABASE = "database"  # Local store failure
    UNKNOWN = "unknown"  # Unclassified error


class SyncPath(str, Enum):
    """Which protocol path produced a result."""

    TYPED = "typed"
    LEGACY = "legacy"
    LOCAL = "local"


class ResourceKind(str, Enum):
    """Resource a sync operation acts on."""

    SUBSCRIPTIONS = "subscriptions"
    ROOMS = "rooms"
    READ = "read"


# Columns owned by the subscriptions fetch. Room enrichment never writes these.
SUBSCRIPTION_FIELDS = (
    "id",
    "name",
    "fname",
    "type",
    "unread",
    "user_mentions",
    "alert",
    "open",
    "favorite",
    "last_seen",
    "updated_at",
)

# Columns owned by the rooms fetch.
ROOM_FIELDS = (
    "topic",
    "description",
    "announcement",
    "read_only",
    "broadcast",
    "last_message",
    "room_updated_at",
)


@dataclass
class Subscription:
    """A user's membership in a room.

    Identity is the room id (rid): there is exactly one Subscription per room
    in the local store. A subscription whose auth_id is None has been soft
    removed; the row and its history are kept so it can be re-associated.

    Attributes:
        rid: Room id (identity).
        id: Server-side subscription id.
        name: Room name.
        fname: Display name.
        type: Room type code ("c" channel, "p" private, "d" direct, ...).
        unread: Unread message count.
        user_mentions: Unread mentions of the user.
        alert: Whether the room has unseen activity.
        open: Whether the room is open in the user's room list.
        favorite: Whether the room is starred.
        last_seen: Last time the user read the room.
        updated_at: Server update time of the subscription.
        topic: Room topic (from rooms fetch).
        description: Room description (from rooms fetch).
        announcement: Room announcement (from rooms fetch).
        read_only: Whether the room is read only (from rooms fetch).
        broadcast: Whether the room is a broadcast room (from rooms fetch).
        last_message: Last message summary, opaque JSON (from rooms fetch).
        room_updated_at: Server update time of the room.
        auth_id: Owning session id, None when soft removed.
    """

    rid: str
    id: str | None = None
    name: str | None = None
    fname: str | None = None
    type: str | None = None
    unread: int = 0
    user_mentions: int = 0
    alert: bool = False
    open: bool = False
    favorite: bool = False
    last_seen: datetime | None = None
    updated_at: datetime | None = None
    topic: str | None = None
    description: str | None = None
    announcement: str | None = None
    read_only: bool = False
    broadcast: bool = False
    last_message: dict[str, Any] | None = None
    room_updated_at: datetime | None = None
    auth_id: str | None = None

    def __post_init__(self) -> None:
        """Validate identity after initialization."""
        if not self.rid:
            raise ValueError("Subscription rid cannot be empty")

    @property
    def is_removed(self) -> bool:
        """True if the subscription has no owning session."""
        return self.auth_id is None

    @property
    def display_name(self) -> str:
        return self.fname or self.name or self.rid

    def with_fields(self, values: dict[str, Any]) -> Subscription:
        """Return a copy with the given attribute values applied."""
        return replace(self, **values)


@dataclass
class Session:
    """An authenticated session against one server.

    The session record carries the sync watermark: last_subscription_fetch
    marks the point up to which subscription deltas have been fully applied.

    Attributes:
        id: Local session identifier.
        user_id: Server user id.
        server_url: Base URL of the server.
        token: Auth token for the typed API.
        is_current: Whether this is the session used by default.
        last_subscription_fetch: Sync watermark, None before the first sync.
    """

    id: str
    user_id: str
    server_url: str
    token: str = ""
    is_current: bool = False
    last_subscription_fetch: datetime | None = None


@dataclass
class SyncResult:
    """Result of a sync operation.

    Attributes:
        outcome: APPLIED, SKIPPED or FAILED.
        resource: Which resource was synced.
        path: Protocol path that produced the result.
        upserted: Records upserted with the session's ownership link.
        removed: Records soft removed (ownership link cleared).
        enriched: Subscriptions updated with room data.
        dropped: Records with no matching subscription.
        skipped_records: Records that failed validation.
        watermark: Session watermark after the operation, if touched.
        error: Error message if the operation did not apply.
        error_type: Classification of the error for programmatic handling.
    """

    outcome: SyncOutcome
    resource: ResourceKind
    path: SyncPath = SyncPath.TYPED
    upserted: int = 0
    removed: int = 0
    enriched: int = 0
    dropped: int = 0
    skipped_records: int = 0
    watermark: datetime | None = None
    error: str | None = None
    error_type: SyncErrorType = field(default=SyncErrorType.NONE)

    @property
    def applied(self) -> bool:
        return self.outcome == SyncOutcome.APPLIED
