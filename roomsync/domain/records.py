"""Validated payload records and delta batches.

Server payloads are loosely typed JSON: field presence is not guaranteed and
values may have the wrong type. Records are validated here once, at the
boundary. A record without an identity is rejected with InvalidRecordError;
an optional field with an unusable value is left out of the record rather
than failing the whole batch.

Records remember which fields the server actually sent, so a get-or-create
merge only touches those fields.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from roomsync.domain.exceptions import InvalidRecordError, MalformedPayloadError
from roomsync.domain.value_objects import parse_server_date

logger = logging.getLogger(__name__)

_MISSING = object()


def _as_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return _MISSING


def _as_int(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return _MISSING


def _as_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return _MISSING


def _as_date(value: Any) -> Any:
    if value is None:
        return None
    parsed = parse_server_date(value)
    return parsed if parsed is not None else _MISSING


def _as_object(value: Any) -> Any:
    if value is None or isinstance(value, dict):
        return value
    return _MISSING


# payload key -> (column, converter)
_SUBSCRIPTION_MAPPING: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "_id": ("id", _as_str),
    "name": ("name", _as_str),
    "fname": ("fname", _as_str),
    "t": ("type", _as_str),
    "unread": ("unread", _as_int),
    "userMentions": ("user_mentions", _as_int),
    "alert": ("alert", _as_bool),
    "open": ("open", _as_bool),
    "f": ("favorite", _as_bool),
    "ls": ("last_seen", _as_date),
    "_updatedAt": ("updated_at", _as_date),
}

_ROOM_MAPPING: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "topic": ("topic", _as_str),
    "description": ("description", _as_str),
    "announcement": ("announcement", _as_str),
    "ro": ("read_only", _as_bool),
    "broadcast": ("broadcast", _as_bool),
    "lastMessage": ("last_message", _as_object),
    "_updatedAt": ("room_updated_at", _as_date),
}


def _map_fields(
    payload: dict[str, Any],
    mapping: dict[str, tuple[str, Callable[[Any], Any]]],
) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, (column, convert) in mapping.items():
        if key not in payload:
            continue
        converted = convert(payload[key])
        if converted is _MISSING:
            logger.debug("Ignoring field %r with unexpected value %r", key, payload[key])
            continue
        values[column] = converted
    return values


def _identity(payload: Any, keys: tuple[str, ...]) -> str:
    if not isinstance(payload, dict):
        raise InvalidRecordError(f"Record must be an object, got {type(payload).__name__}")
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    raise InvalidRecordError(f"Record has no identity (expected one of {', '.join(keys)})")


@dataclass(frozen=True)
class SubscriptionRecord:
    """A subscription as sent by the server.

    Attributes:
        rid: Room id the subscription belongs to (identity), None when the
            payload only names the subscription by its "_id".
        values: Subscription columns present in the payload.
    """

    rid: str | None
    values: dict[str, Any] = field(default_factory=dict)

    @property
    def subscription_id(self) -> str | None:
        return self.values.get("id")

    @classmethod
    def from_payload(cls, payload: Any) -> SubscriptionRecord:
        """Validate a subscription payload.

        Identity is the room id ("rid", or "id" in minimal records). A record
        carrying only the subscription's own "_id" has no room id; the merge
        resolves it against the stored subscription id.

        Raises:
            InvalidRecordError: If the payload is not an object or has no identity.
        """
        if isinstance(payload, dict) and "rid" not in payload and "id" not in payload:
            values = _map_fields(payload, _SUBSCRIPTION_MAPPING)
            if values.get("id"):
                return cls(rid=None, values=values)
        rid = _identity(payload, ("rid", "id"))
        return cls(rid=rid, values=_map_fields(payload, _SUBSCRIPTION_MAPPING))


@dataclass(frozen=True)
class RoomRecord:
    """Room metadata as sent by the server.

    Attributes:
        rid: Room id (identity).
        values: Room columns present in the payload.
    """

    rid: str
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> RoomRecord:
        """Validate a room payload.

        Raises:
            InvalidRecordError: If the payload is not an object or has no "_id".
        """
        rid = _identity(payload, ("_id", "id"))
        return cls(rid=rid, values=_map_fields(payload, _ROOM_MAPPING))


R = TypeVar("R", SubscriptionRecord, RoomRecord)


@dataclass
class DeltaBatch(Generic[R]):
    """The list/update/remove grouping returned by one sync fetch.

    Constructed per response, consumed once by the merge engine.

    Attributes:
        listed: Full or initial set ("list").
        updated: Incremental changes ("update").
        removed: Membership removals ("remove").
        skipped: Records rejected by validation.
    """

    listed: list[R] = field(default_factory=list)
    updated: list[R] = field(default_factory=list)
    removed: list[R] = field(default_factory=list)
    skipped: int = 0

    def __len__(self) -> int:
        return len(self.listed) + len(self.updated) + len(self.removed)

    def upserts(self) -> Iterator[R]:
        """Yield list records then update records.

        Update comes after list so that, when both groups name the same
        identity, the update wins.
        """
        yield from self.listed
        yield from self.updated

    @classmethod
    def from_typed_payload(
        cls,
        payload: dict[str, Any],
        parse: Callable[[Any], R],
    ) -> DeltaBatch[R]:
        """Build a batch from a typed API response body.

        Args:
            payload: Decoded response with optional "list", "update", "remove".
            parse: Record parser (SubscriptionRecord.from_payload or
                RoomRecord.from_payload).
        """
        batch: DeltaBatch[R] = cls()
        batch._extend(batch.listed, payload.get("list"), parse, "list")
        batch._extend(batch.updated, payload.get("update"), parse, "update")
        batch._extend(batch.removed, payload.get("remove"), parse, "remove")
        return batch

    @classmethod
    def from_legacy_result(
        cls,
        result: Any,
        parse: Callable[[Any], R],
        include_remove: bool = True,
    ) -> DeltaBatch[R]:
        """Build a batch from a legacy RPC result.

        A top-level array is the initial full list. An object carries
        incremental "update" and (for subscriptions) "remove" arrays.

        Raises:
            MalformedPayloadError: If the result is neither an array nor an object.
        """
        batch: DeltaBatch[R] = cls()
        if isinstance(result, list):
            batch._extend(batch.listed, result, parse, "list")
        elif isinstance(result, dict):
            batch._extend(batch.updated, result.get("update"), parse, "update")
            if include_remove:
                batch._extend(batch.removed, result.get("remove"), parse, "remove")
        else:
            raise MalformedPayloadError(
                f"Unexpected legacy result type: {type(result).__name__}"
            )
        return batch

    def _extend(
        self,
        target: list[R],
        items: Any,
        parse: Callable[[Any], R],
        group: str,
    ) -> None:
        if items is None:
            return
        if not isinstance(items, list):
            logger.warning("Ignoring %r group: expected a list, got %s", group, type(items).__name__)
            return
        for item in items:
            try:
                target.append(parse(item))
            except InvalidRecordError as e:
                self.skipped += 1
                logger.warning("Skipping invalid record in %r group: %s", group, e.message)
