"""Value objects for server dates and versions.

The typed REST API sends ISO-8601 strings while the legacy RPC protocol wraps
timestamps as {"$date": <millis since epoch>}. Both are normalized to aware
UTC datetimes here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

_VERSION_PATTERN = re.compile(r"^\s*v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def parse_server_date(value: Any) -> datetime | None:
    """Parse a server timestamp into an aware UTC datetime.

    Args:
        value: ISO-8601 string, {"$date": millis} wrapper, epoch millis,
            or an existing datetime.

    Returns:
        Parsed datetime, or None if the value is missing or unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, dict):
        return parse_server_date(value.get("$date"))
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # fromisoformat() handles "Z" since 3.11
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def to_date_param(value: datetime) -> dict[str, int]:
    """Encode a datetime as a legacy RPC date wrapper."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return {"$date": int(value.timestamp() * 1000)}


def to_iso8601(value: datetime) -> str:
    """Format a datetime the way the REST API expects it (UTC, millis, Z)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


@dataclass(frozen=True, order=True)
class ServerVersion:
    """Dotted server version (major.minor.patch) with ordering.

    Raises:
        ValueError: If the string does not start with a version number.
    """

    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> ServerVersion:
        match = _VERSION_PATTERN.match(text or "")
        if not match:
            raise ValueError(f"Invalid server version: {text!r}")
        major, minor, patch = (int(part) if part else 0 for part in match.groups())
        return cls(major, minor, patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"
