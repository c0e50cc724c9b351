"""Typed API requests.

Each request knows its HTTP method, endpoint path, parameters, and the
minimum server version that serves it. Servers older than that version only
speak the legacy RPC protocol for the same data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

from roomsync.domain.value_objects import ServerVersion, to_iso8601


@dataclass(frozen=True)
class SubscriptionsRequest:
    """Fetch subscription deltas newer than updated_since (None = full sync)."""

    updated_since: datetime | None = None

    method: ClassVar[str] = "GET"
    path: ClassVar[str] = "/api/v1/subscriptions.get"
    required_version: ClassVar[ServerVersion] = ServerVersion(0, 60, 0)

    def query(self) -> dict[str, str]:
        if self.updated_since is None:
            return {}
        return {"updatedSince": to_iso8601(self.updated_since)}

    def body(self) -> dict[str, Any] | None:
        return None


@dataclass(frozen=True)
class RoomsRequest:
    """Fetch room metadata deltas newer than updated_since (None = full sync)."""

    updated_since: datetime | None = None

    method: ClassVar[str] = "GET"
    path: ClassVar[str] = "/api/v1/rooms.get"
    required_version: ClassVar[ServerVersion] = ServerVersion(0, 62, 0)

    def query(self) -> dict[str, str]:
        if self.updated_since is None:
            return {}
        return {"updatedSince": to_iso8601(self.updated_since)}

    def body(self) -> dict[str, Any] | None:
        return None


@dataclass(frozen=True)
class SubscriptionReadRequest:
    """Acknowledge that the user has read everything in a room."""

    rid: str

    method: ClassVar[str] = "POST"
    path: ClassVar[str] = "/api/v1/subscriptions.read"
    required_version: ClassVar[ServerVersion] = ServerVersion(0, 61, 0)

    def query(self) -> dict[str, str]:
        return {}

    def body(self) -> dict[str, Any] | None:
        return {"rid": self.rid}


ApiRequest = SubscriptionsRequest | RoomsRequest | SubscriptionReadRequest
